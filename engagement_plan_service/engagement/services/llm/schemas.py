# engagement/services/llm/schemas.py

_STR_LIST = {"type": "array", "items": {"type": "string"}}

_SAFETY_RULE = {
    "type": "object",
    "properties": {
        "rule": {"type": "string"},
        "source": {"type": "string", "enum": ["protocol_safety_constraint", "not_specified_in_protocol"]},
        "type": {"type": "string"},
    },
    "required": ["rule", "source"],
}

# structured-output schema handed to the external generator for the ai_strict_mirror path
ENGAGEMENT_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "generated_method": {"type": "string", "enum": ["ai_strict_mirror"]},
        "protocol_reference": {"type": "object"},
        "overview": {"type": "object"},
        "summary": {"type": "string"},
        "total_weeks": {"type": ["integer", "null"]},
        "duration_specified_in_protocol": {"type": "boolean"},
        "phases": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "phase_number": {"type": "integer"},
                    "title": {"type": "string"},
                    "week_range": {"type": "string"},
                    "duration": {"type": "string"},
                    "phase_goal": {"type": "string"},
                    "clinical_elements": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "name": {"type": "string", "description": "ADD: / Continue: + verbatim protocol name"},
                                "status": {"type": "string"},
                                "source": {
                                    "type": "string",
                                    "enum": ["protocol_supplement", "protocol_lifestyle", "not_specified", "extraction_issue"],
                                },
                            },
                            "required": ["name", "status", "source"],
                        },
                    },
                    "engagement_actions": _STR_LIST,
                    "protocol_trace": _STR_LIST,
                    "safety_gate": {
                        "type": "object",
                        "properties": {
                            "conditions": _STR_LIST,
                            "if_pass": {"type": "string"},
                            "if_fail": {"type": "string"},
                            "source": {"type": "string"},
                        },
                        "required": ["conditions", "if_pass", "if_fail", "source"],
                    },
                },
                "required": ["phase_number", "title", "week_range", "clinical_elements", "protocol_trace", "safety_gate"],
            },
        },
        "clinic_treatments": {"type": ["object", "null"]},
        "testing_schedule": {"type": ["array", "null"]},
        "safety_rules": {
            "type": "object",
            "properties": {
                "stop_immediately": {"type": "array", "items": _SAFETY_RULE},
                "hold_and_contact": {"type": "array", "items": _SAFETY_RULE},
                "escalation_triggers": {"type": "array", "items": _SAFETY_RULE},
                "safety_summary_in_protocol": {"type": "string", "enum": ["Yes", "No"]},
            },
            "required": ["stop_immediately", "hold_and_contact", "escalation_triggers"],
        },
        "maintenance_path": {"type": "object"},
        "compliance_disclaimer": {"type": "string"},
        "alignment_verification": {"type": "object"},
    },
    "required": ["title", "generated_method", "phases", "safety_rules", "compliance_disclaimer"],
}
