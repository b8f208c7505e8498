# Overview: Static catalog of supported company settings (type, default, validation).

SETTINGS_CATALOG = [
    {
        "key": "contract_number_mask",
        "type": "string",
        "default": "CNT-{YYYY}-{NNN}",
        "validation": {"regex": r"^[^{}]*(\{YYYY\}[^{}]*)?\{NNN\}[^{}]*$"},
        "description": "Mask for manually created contract numbers. {YYYY} is the year, {NNN} the sequence.",
        "category": "contracts",
    },
    {
        "key": "lease_billing_schedule",
        "type": "enum",
        "default": "monthly",
        "validation": {"enum": ["monthly", "quarterly", "yearly"]},
        "description": "Billing schedule applied to contracts derived from won offers.",
        "category": "contracts",
    },
    {
        "key": "default_payment_model",
        "type": "enum",
        "default": "lease",
        "validation": {"enum": ["purchase", "lease", "mixed"]},
        "description": "Payment model preselected for new contracts.",
        "category": "contracts",
    },
    {
        "key": "default_billing_schedule",
        "type": "enum",
        "default": "monthly",
        "validation": {"enum": ["monthly", "quarterly", "yearly"]},
        "description": "Billing schedule preselected for new contracts.",
        "category": "contracts",
    },
    {
        "key": "default_terms",
        "type": "string",
        "default": "",
        "validation": {},
        "description": "Default contract terms text.",
        "category": "contracts",
    },
    {
        "key": "default_contract_duration",
        "type": "int",
        "default": 12,
        "validation": {"min": 1, "max": 120},
        "description": "Default contract duration in months.",
        "category": "contracts",
    },
    {
        "key": "auto_renewal_enabled",
        "type": "bool",
        "default": False,
        "validation": {},
        "description": "Contracts renew automatically unless cancelled.",
        "category": "contracts",
    },
    {
        "key": "auto_renewal_days_notice",
        "type": "int",
        "default": 30,
        "validation": {"min": 0, "max": 365},
        "description": "Days of notice before automatic renewal.",
        "category": "contracts",
    },
    {
        "key": "require_signature",
        "type": "bool",
        "default": True,
        "validation": {},
        "description": "Contracts must be signed before activation.",
        "category": "contracts",
    },
    {
        "key": "notification_days_before_expiry",
        "type": "int",
        "default": 30,
        "validation": {"min": 0, "max": 365},
        "description": "Days before contract expiry to notify the account owner.",
        "category": "contracts",
    },
    {
        "key": "default_currency",
        "type": "enum",
        "default": "PLN",
        "validation": {"enum": ["PLN", "USD", "EUR"]},
        "description": "Currency preselected for new offers.",
        "category": "offers",
    },
    {
        "key": "default_vat_rate",
        "type": "decimal",
        "default": 23.0,
        "validation": {"min": 0, "max": 100},
        "description": "VAT rate (percent) applied on printouts.",
        "category": "finance",
    },
    {
        "key": "km_rate",
        "type": "decimal",
        "default": 0.0,
        "validation": {"min": 0},
        "description": "Travel cost per kilometre for service visits.",
        "category": "finance",
    },
]
