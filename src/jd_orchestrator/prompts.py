from __future__ import annotations

from .contracts import ChatMessage, GenerationRequest

DEFAULT_TEMPERATURE = 0.7
REFINE_TEMPERATURE = 0.6
DEFAULT_MAX_TOKENS = 4000

_SECTION_OUTLINE = """\
1. **Job Title** - Clear, specific, and appropriate for the nonprofit sector
2. **Organization Context** - Brief background about the organization
3. **Role Overview** - Mission-aligned summary connecting to social impact
4. **Key Responsibilities** - 5-7 specific, actionable responsibilities
5. **Required Qualifications** - Essential skills, experience, and education
6. **Preferred Qualifications** - Nice-to-have skills and experience
7. **Skills & Competencies** - Technical and soft skills needed
8. **Working Conditions** - Location, travel requirements, work environment
9. **What We Offer** - Benefits, growth opportunities, impact potential
10. **How to Apply** - Clear application instructions"""

_WRITER = (
    "You are an expert job description writer specializing in the nonprofit and development sector."
)

_BRIEF_SYSTEM = f"""{_WRITER} Create a comprehensive, professional job description based on the brief provided.

Generate a complete job description that includes:

{_SECTION_OUTLINE}

Guidelines:
- Use inclusive, DEI-friendly language throughout
- Focus on impact and mission alignment
- Be specific about experience requirements (years, sectors, skills)
- Include relevant SDG connections where appropriate
- Use a professional but warm tone that attracts purpose-driven candidates

Format the output as a well-structured job description ready for posting, using markdown headers for each section."""

_BRIEF_WITH_ORG_SYSTEM = f"""{_WRITER} Create a comprehensive, professional job description based on the brief and organizational context provided.

Use the organizational context to:
- Align the role with the organization's mission and values
- Include relevant sector-specific language and requirements
- Connect the position to the organization's impact areas

Generate a complete job description that includes:

{_SECTION_OUTLINE}

Guidelines:
- Use inclusive, DEI-friendly language throughout
- Focus on impact and mission alignment with this specific organization
- Include relevant SDG connections based on their work
- Use a professional but warm tone that attracts purpose-driven candidates

Format the output as a well-structured job description ready for posting, using markdown headers for each section."""

_REWRITE_SYSTEM = f"""{_WRITER} Rewrite and improve the provided job posting with better clarity, DEI language, and nonprofit sector alignment.

Improvements to make:
- Enhance clarity and readability
- Use inclusive, DEI-friendly language throughout
- Add any missing standard sections
- Remove jargon and make language accessible

Generate a complete, improved job description that includes:

{_SECTION_OUTLINE}

Maintain the core intent and requirements of the original posting. Format the output as a well-structured job description, using markdown headers for each section."""

_REFINE_SYSTEM = f"""{_WRITER} Refine and improve the existing job description draft with better structure, clarity, and nonprofit sector best practices.

Improvements to make:
- Enhance overall structure and organization
- Use inclusive, DEI-friendly language throughout
- Ensure all standard sections are present and well-written
- Remove jargon and improve accessibility

Generate a refined job description that includes:

{_SECTION_OUTLINE}

Preserve the original intent, core requirements and any organization-specific details. Format the output as a polished job description, using markdown headers for each section."""


def _request(system: str, user: str, *, temperature: float, max_tokens: int) -> GenerationRequest:
    return GenerationRequest(
        messages=(ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)),
        temperature=temperature,
        max_tokens=max_tokens,
    )


def brief_request(
    brief: str, *, temperature: float = DEFAULT_TEMPERATURE, max_tokens: int = DEFAULT_MAX_TOKENS
) -> GenerationRequest:
    user = (
        "Please create a comprehensive job description based on this brief:\n\n"
        f'"{brief}"\n\n'
        "Generate a complete, professional job description suitable for the nonprofit/development sector."
    )
    return _request(_BRIEF_SYSTEM, user, temperature=temperature, max_tokens=max_tokens)


def brief_with_organization_request(
    brief: str,
    organization_context: str,
    *,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> GenerationRequest:
    user = (
        "Please create a comprehensive job description based on this information:\n\n"
        f'**Job Brief:**\n"{brief}"\n\n'
        f"**Organization Context:**\n{organization_context}\n\n"
        "Generate a complete, professional job description that aligns with this organization's mission and work."
    )
    return _request(_BRIEF_WITH_ORG_SYSTEM, user, temperature=temperature, max_tokens=max_tokens)


def rewrite_request(
    url: str, posting_text: str, *, temperature: float = DEFAULT_TEMPERATURE, max_tokens: int = DEFAULT_MAX_TOKENS
) -> GenerationRequest:
    user = (
        "Please rewrite and improve this job posting:\n\n"
        f"**Source URL:** {url}\n\n"
        f"**Original Job Posting:**\n{posting_text}\n\n"
        "Create an improved version with better clarity, DEI language, and nonprofit sector alignment."
    )
    return _request(_REWRITE_SYSTEM, user, temperature=temperature, max_tokens=max_tokens)


def refine_request(
    existing_text: str,
    *,
    source_name: str | None = None,
    temperature: float = REFINE_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> GenerationRequest:
    source = f"**Original File:** {source_name}\n\n" if source_name else ""
    user = (
        "Please refine and improve this job description draft:\n\n"
        f"{source}**Content:**\n{existing_text}\n\n"
        "Create a refined, professional version optimized for the nonprofit sector."
    )
    return _request(_REFINE_SYSTEM, user, temperature=temperature, max_tokens=max_tokens)
