"""
Prompt templates for different agent tasks.
"""


class PromptTemplates:
    """Collection of prompt templates for agent tasks."""

    # Search Agent Prompts
    JOB_ANALYSIS_SYSTEM = (
        "You are an expert job market analyst. Analyze job postings and extract "
        "key information accurately."
    )

    JOB_ANALYSIS = """Analyze this job posting and compare it with the candidate's criteria. Return a JSON object with your analysis.

Job Posting:
Title: {title}
Content: {content}
URL: {url}

Candidate's Criteria:
- Title: {criteria_title}
- Keywords: {keywords}
- Location: {location}
- Minimum Salary: {min_salary}
- Job Type: {job_type}
- Required Skills: {required_skills}
- Preferred Skills: {preferred_skills}
- Additional Requirements: {additional_requirements}

Search Instructions:
{instructions}

Analyze and return a JSON object with:
{{
    "matches_criteria": boolean,
    "reason": string,
    "extracted_info": {{
        "title": string,
        "company": string,
        "location": string,
        "salary_min": number|null,
        "salary_max": number|null,
        "job_type": string|null,
        "required_skills": string[],
        "preferred_skills": string[],
        "description": string,
        "contact_email": string|null
    }},
    "confidence_score": number (0-1)
}}

Return only valid JSON, no additional text."""

    # Draft Agent Prompts
    COVER_LETTER = """Write a professional cover letter for a {title} position at {company}.

Job Details:
- Title: {title}
- Company: {company}
- Description: {description}
- Required Skills: {required_skills}
- Preferred Skills: {preferred_skills}

Candidate Background:
- Experience: {experience_years} years
- Education: {education}
- Relevant Skills: {matching_skills}

Additional Instructions:
{instructions}

The cover letter should:
1. Be professional and engaging
2. Highlight matching skills and relevant experience
3. Show enthusiasm for the role and company
4. Demonstrate understanding of the company's needs
5. Include specific examples of relevant achievements
6. Be concise but comprehensive

Format the letter with proper spacing and paragraphs."""

    # Communication Agent Prompts
    EMAIL_CLASSIFICATION_SYSTEM = (
        "You are an assistant that triages a job seeker's inbox. "
        "Classify emails precisely and never invent details."
    )

    EMAIL_CLASSIFICATION = """Analyze this email and determine if it's related to a job application or hiring process.
Return a JSON object with your analysis.

From: {sender}
Subject: {subject}
Content: {content}

Analyze and return:
{{
    "is_job_related": boolean,
    "email_type": "interview_invitation" | "application_received" | "rejection" | "offer" | "follow_up_needed" | "other",
    "company_name": string|null,
    "position_title": string|null,
    "urgency_level": number (1-5),
    "suggested_next_step": string|null,
    "interview_datetime": ISO-8601 string|null,
    "interview_duration_minutes": number|null,
    "interview_type": "phone" | "video" | "onsite" | "technical" | "behavioral" | null,
    "interview_location": string|null
}}

Return only valid JSON, no additional text."""

    FOLLOW_UP = """Generate a professional follow-up email for a job application.

Context:
- Position: {title}
- Company: {company}
- Application Date: {application_date}
- Follow-up Number: {follow_up_number}
- Days Since Application: {days_since_application}

Communication Instructions:
{instructions}

The email should:
1. Be professional and courteous
2. Reference the specific position and application date
3. Express continued interest
4. Request an update on the application status
5. Thank them for their time
6. Include a professional signature

Return only the email body."""

    # Orchestrator Prompts
    INSTRUCTION_IMPROVEMENT_SYSTEM = (
        "You are a career coach reviewing how an automated job-search assistant "
        "performs. Suggest concrete, conservative instruction changes."
    )

    INSTRUCTION_IMPROVEMENT = """Review the operating instructions of the {agent_type} agent in a job-search assistant and suggest an improved version based on recent outcomes.

Current Instructions:
{current_instructions}

Outcomes over the last {window_days} days:
{metrics}

Return a JSON object:
{{
    "should_change": boolean,
    "proposed_instructions": string,
    "reason": string
}}

Keep what works; change only what the outcomes suggest. Return only valid JSON, no additional text."""

    @staticmethod
    def format_list(items) -> str:
        return ", ".join(str(item) for item in (items or []) if item)

    @staticmethod
    def format_instructions(instructions: str) -> str:
        """One ``- `` bullet per non-empty instruction line."""
        lines = [line.strip().lstrip("-*").strip() for line in (instructions or "").splitlines()]
        return "\n".join(f"- {line}" for line in lines if line) or "- None"
