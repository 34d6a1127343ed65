"""HR Suite — Nexus HRIS, PayLinq payroll and RecruitIQ ATS backend."""
