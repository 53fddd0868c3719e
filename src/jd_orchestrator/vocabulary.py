"""
Keyword tables used by the classifier, the follow-up advisor and the extractor.

Everything here is plain data. Matching rules live with the code that consumes
the tables, so a table can be swapped per locale or sector without touching
the parsing logic.
"""

from __future__ import annotations

# Job / role vocabulary. Matched as word prefixes ("manage" hits "management").
ROLE_TERMS: tuple[str, ...] = (
    # role types
    "coordinator", "manager", "officer", "specialist", "consultant",
    "director", "assistant", "analyst", "advisor", "lead", "head",
    "supervisor", "administrator", "executive", "associate",
    # job terms
    "role", "position", "job", "vacancy", "opportunity", "opening",
    "responsibilities", "duties", "tasks", "requirements",
    "experience", "skills", "qualifications", "education",
    "degree", "certification", "background", "expertise",
    # action words
    "manage", "coordinate", "oversee", "implement", "develop",
    "support", "assist", "supervise", "monitor",
    "evaluate", "analyze", "report", "collaborate",
    # nonprofit / development
    "program", "project", "community", "development", "humanitarian",
    "nonprofit", "ngo", "organization", "mission", "impact",
    "beneficiaries", "stakeholders", "partners", "donors",
    "field", "remote", "country", "region", "local",
)

# Terms a free-text brief must mention before it is worth a provider call.
BRIEF_REQUIRED_TERMS: tuple[str, ...] = (
    "role", "position", "job", "coordinator", "manager", "expert", "officer",
    "specialist", "director", "assistant", "need", "looking", "seeking",
)

JOB_BOARD_DOMAINS: tuple[str, ...] = (
    "indeed.com", "linkedin.com", "glassdoor.com", "monster.com",
    "careerbuilder.com", "ziprecruiter.com", "simplyhired.com",
    "idealist.org", "devex.com", "reliefweb.int", "devnetjobs.org",
    "jobs.org", "ngoaidmap.org", "interaction.org",
)

JOB_PATH_SEGMENTS: tuple[str, ...] = (
    "jobs", "careers", "opportunities", "vacancies",
    "job", "career", "opportunity", "vacancy",
    "employment", "positions", "openings", "hiring",
)

JOB_QUERY_PARAMS: tuple[str, ...] = ("job", "position", "role", "career", "vacancy")

# (field, essential, question, regex patterns). Order is the question priority.
# Patterns are compiled case-insensitively.
FOLLOW_UP_FIELDS: tuple[tuple[str, bool, str, tuple[str, ...]], ...] = (
    (
        "location",
        True,
        "What is the location for this role? (e.g., remote, specific city, hybrid)",
        (
            r"\blocation",
            r"\bremote\b",
            r"\bhybrid\b",
            r"\bon-?site\b",
            r"\bbased (?:in|at)\b",
            r"\brelocat",
            r"(?-i:\bin [A-Z][a-z]+)",
        ),
    ),
    (
        "contract",
        True,
        "What type of contract is this? (e.g., full-time, part-time, consultant)",
        (
            r"\bcontract",
            r"\bfull[- ]?time\b",
            r"\bpart[- ]?time\b",
            r"\bfixed[- ]term\b",
            r"\bconsultan(?:cy|t)\b",
            r"\btemporary\b",
            r"\bpermanent\b",
            r"\bvolunteer",
            r"\binternship",
        ),
    ),
    (
        "experience",
        True,
        "What level of experience is required for this role?",
        (
            r"\bexperience",
            r"\byears?\b",
            r"\byrs?\b",
            r"\bsenior\b",
            r"\bjunior\b",
            r"\bentry[- ]level\b",
            r"\bmid[- ]level\b",
        ),
    ),
    (
        "organization",
        True,
        "What organization is this role for?",
        (
            r"\borgani[sz]ation",
            r"\bcompany\b",
            r"\bngo\b",
            r"\bcharity\b",
            r"\bfoundation\b",
            r"\bagency\b",
            r"\bnon-?profit\b",
        ),
    ),
    (
        "compensation",
        False,
        "Is there a salary range for this position? (optional)",
        (
            r"\bsalary",
            r"\bcompensation\b",
            r"\bpay\b",
            r"\bstipend\b",
            r"[$€£]\s?\d",
            r"\b(?:usd|eur|gbp)\b",
        ),
    ),
    (
        "deadline",
        False,
        "Is there an application deadline for this role?",
        (
            r"\bdeadline\b",
            r"\bapply by\b",
            r"\bclosing date\b",
            r"\bapplications close\b",
        ),
    ),
)

# (id, display title, header patterns). First match wins; order matters.
SECTION_CATALOG: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    (
        "overview",
        "Role Overview",
        (
            r"\boverview\b",
            r"\bsummary\b",
            r"\b(?:role|position|job) description\b",
            r"\babout (?:the )?(?:role|position|job)\b",
            r"\bpurpose of the (?:role|position)\b",
        ),
    ),
    (
        "responsibilities",
        "Key Responsibilities",
        (
            r"\bresponsibilit",
            r"\bduties\b",
            r"\bwhat you(?:'|’)?ll do\b",
            r"\bmain tasks\b",
        ),
    ),
    (
        "qualifications",
        "Qualifications & Experience",
        (
            r"\bqualifications?\b",
            r"\brequirements?\b",
            r"\bexperience\b",
            r"\bwhat we(?:'|’)?re looking\b",
            r"\bessential criteria\b",
            r"\beducation\b",
        ),
    ),
    (
        "competencies",
        "Competencies",
        (
            r"\bcompetenc",
            r"\bskills?\b",
            r"\babilities\b",
            r"\bcapabilities\b",
        ),
    ),
    (
        "benefits",
        "What We Offer",
        (
            r"\bwhat we offer\b",
            r"\bbenefits?\b",
            r"\bpackage\b",
            r"\bcompensation\b",
            r"\bsalary\b",
        ),
    ),
    (
        "working_conditions",
        "Working Conditions",
        (
            r"\bworking conditions\b",
            r"\bwork environment\b",
            r"\blocation\b",
            r"\bcontract\b",
            r"\btravel\b",
        ),
    ),
    (
        "application_process",
        "Application Process",
        (
            r"\bhow to apply\b",
            r"\bapplication\b",
            r"\bapply\b",
            r"\bcontact\b",
            r"\bsubmit",
        ),
    ),
    (
        "about_organization",
        "About the Organization",
        (
            r"\babout (?:us|the organi[sz]ation|our organi[sz]ation)\b",
            r"\borgani[sz]ation",
            r"\bcompany\b",
            r"\bwho we are\b",
        ),
    ),
)

SECTOR_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Health", ("health", "medical", "healthcare", "clinical", "hospital", "clinic", "wellness", "nutrition", "mental health")),
    ("Education", ("education", "school", "teaching", "learning", "academic", "university", "literacy", "training")),
    ("Environment", ("environment", "climate", "sustainability", "conservation", "green", "renewable", "biodiversity", "ecosystem")),
    ("Human Rights", ("human rights", "justice", "advocacy", "legal", "protection", "equality", "freedom", "democracy")),
    ("Humanitarian", ("humanitarian", "emergency", "disaster", "relief", "crisis", "refugee", "displacement", "conflict")),
    ("Development", ("development", "poverty", "economic", "community", "rural", "urban", "infrastructure", "capacity building")),
    ("Gender", ("gender", "women", "equality", "empowerment", "inclusion", "diversity", "feminism", "girls")),
    ("Livelihoods", ("livelihood", "employment", "income", "economic", "entrepreneurship", "skills", "microfinance", "agriculture")),
    ("Water & Sanitation", ("water", "sanitation", "hygiene", "wash", "clean water", "sewage", "drainage")),
    ("Food Security", ("food", "nutrition", "hunger", "agriculture", "farming", "crops", "livestock", "malnutrition")),
    ("Child Protection", ("child", "children", "youth", "protection", "safeguarding", "abuse", "exploitation")),
    ("Governance", ("governance", "democracy", "transparency", "accountability", "policy", "government", "civic")),
)

SDG_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("SDG 1", ("poverty", "poor", "income", "economic empowerment", "livelihood", "basic needs")),
    ("SDG 2", ("hunger", "food", "nutrition", "agriculture", "farming", "malnutrition", "food security")),
    ("SDG 3", ("health", "medical", "healthcare", "wellbeing", "disease", "mental health", "wellness")),
    ("SDG 4", ("education", "learning", "school", "training", "literacy", "skills", "knowledge")),
    ("SDG 5", ("gender", "women", "equality", "empowerment", "girls", "feminism", "discrimination")),
    ("SDG 6", ("water", "sanitation", "hygiene", "wash", "clean water", "sewage")),
    ("SDG 7", ("energy", "electricity", "renewable", "solar", "wind", "power", "fuel")),
    ("SDG 8", ("employment", "work", "economic", "growth", "jobs", "decent work", "labor")),
    ("SDG 9", ("infrastructure", "innovation", "technology", "industry", "research", "development")),
    ("SDG 10", ("inequality", "inclusion", "discrimination", "marginalized", "vulnerable", "equity")),
    ("SDG 11", ("cities", "urban", "communities", "housing", "transport", "sustainable cities")),
    ("SDG 12", ("consumption", "production", "waste", "recycling", "sustainable", "circular economy")),
    ("SDG 13", ("climate", "environment", "carbon", "emissions", "global warming", "adaptation")),
    ("SDG 14", ("ocean", "marine", "sea", "fishing", "coastal", "aquatic")),
    ("SDG 15", ("forest", "biodiversity", "ecosystem", "wildlife", "conservation", "land")),
    ("SDG 16", ("peace", "justice", "governance", "institutions", "rule of law", "transparency")),
    ("SDG 17", ("partnership", "cooperation", "collaboration", "global", "alliance", "network")),
)

SDG_NAMES: dict[str, str] = {
    "SDG 1": "No Poverty",
    "SDG 2": "Zero Hunger",
    "SDG 3": "Good Health and Well-being",
    "SDG 4": "Quality Education",
    "SDG 5": "Gender Equality",
    "SDG 6": "Clean Water and Sanitation",
    "SDG 7": "Affordable and Clean Energy",
    "SDG 8": "Decent Work and Economic Growth",
    "SDG 9": "Industry, Innovation and Infrastructure",
    "SDG 10": "Reduced Inequalities",
    "SDG 11": "Sustainable Cities and Communities",
    "SDG 12": "Responsible Consumption and Production",
    "SDG 13": "Climate Action",
    "SDG 14": "Life Below Water",
    "SDG 15": "Life on Land",
    "SDG 16": "Peace, Justice and Strong Institutions",
    "SDG 17": "Partnerships for the Goals",
}

GENDERED_TERMS: tuple[str, ...] = ("guys", "manpower", "chairman", "policeman", "fireman", "mankind")

INCLUSIVE_TERMS: tuple[str, ...] = (
    "diverse", "inclusive", "equal opportunity", "all backgrounds",
    "everyone", "accessibility", "accommodation",
)

ACCESSIBILITY_TERMS: tuple[str, ...] = ("accommodation", "accessibility")

BIAS_TERMS: tuple[str, ...] = ("native speaker", "cultural fit", "young", "energetic", "digital native")

JARGON_TERMS: tuple[tuple[str, str], ...] = (
    ("synergize", "work together"),
    ("leverage", "use"),
    ("paradigm", "approach"),
    ("ideate", "brainstorm"),
    ("operationalize", "implement"),
    ("stakeholder", "partner or community member"),
    ("deliverables", "results or outputs"),
    ("bandwidth", "capacity or time"),
    ("circle back", "follow up"),
    ("deep dive", "detailed analysis"),
    ("low-hanging fruit", "easy wins"),
    ("move the needle", "make progress"),
)

PASSIVE_AUXILIARIES: tuple[str, ...] = ("is", "are", "was", "were", "been", "being")

# (pattern, normalized label); first match wins.
CONTRACT_TYPES: tuple[tuple[str, str], ...] = (
    (r"\bfull[- ]?time\b", "Full-Time"),
    (r"\bpart[- ]?time\b", "Part-Time"),
    (r"\bfixed[- ]term\b", "Fixed-Term"),
    (r"\bconsultan(?:cy|t)\b", "Consultancy"),
    (r"\binternship\b", "Internship"),
    (r"\bvolunteer\b", "Volunteer"),
    (r"\btemporary\b", "Temporary"),
    (r"\bpermanent\b", "Permanent"),
    (r"\bcontract\b", "Contract"),
)
