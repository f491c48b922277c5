"""Built-in compliance template catalog, used when no configuration supplies one."""

from compliance_kernel.domain.dtos import ComplianceTemplate, JurisdictionLevel

DEFAULT_TEMPLATES: tuple[ComplianceTemplate, ...] = (
    ComplianceTemplate("epa-risk-matrix", "EPA Risk Matrix", JurisdictionLevel.FEDERAL),
    ComplianceTemplate("hud-4010", "HUD Form 4010", JurisdictionLevel.FEDERAL),
    ComplianceTemplate(
        "dot-env-impact",
        "DOT Environmental Impact Statement",
        JurisdictionLevel.STATE,
    ),
    ComplianceTemplate(
        "local-zoning-compliance",
        "Local Zoning Compliance Report",
        JurisdictionLevel.LOCAL,
    ),
)
