"""
Draft Agent: writes a cover letter and records a draft application.
"""

import logging
from typing import List, Optional

from agents.base_agent import BaseAgent
from core.errors import ValidationError
from llm.llm_client import GenerationOptions, LLMClient
from llm.prompts import PromptTemplates
from models import AgentInstruction, Application, ApplicationMetadata, Job, Resume
from models.base import utcnow
from storage.base import Repository

logger = logging.getLogger(__name__)

COVER_LETTER_OPTIONS = GenerationOptions(temperature=0.7, max_tokens=1000)


def matching_skills(resume_skills: List[str], job: Job) -> List[str]:
    """Resume skills that appear (case-insensitively) among the job's skills."""
    wanted = {skill.strip().lower() for skill in job.skills}
    return [skill for skill in resume_skills if skill.strip().lower() in wanted]


class DraftAgent(BaseAgent):
    """Agent that generates tailored application drafts."""

    def __init__(self, llm_client: LLMClient, store: Optional[Repository] = None):
        super().__init__(name="DraftAgent", store=store, role="draft")
        self.llm_client = llm_client

    def draft(
        self, job: Job, resume: Resume, instruction: Optional[AgentInstruction] = None
    ) -> Application:
        """Create a draft application for a job.

        Args:
            job: Target job
            resume: Candidate resume
            instruction: Active draft instruction (optional)

        Returns:
            Application in ``draft`` status

        Raises:
            ProviderError: if generation fails
            ValidationError: if the generated letter is empty
        """
        instructions_text = instruction.instructions if instruction else ""
        prompt = self.build_prompt(job, resume, instructions_text)

        cover_letter = self.llm_client.generate(prompt, COVER_LETTER_OPTIONS).strip()
        if not cover_letter:
            raise ValidationError(f"Empty cover letter generated for job {job.id}")

        application = Application(
            user_id=job.user_id,
            job_id=job.id,
            resume_id=resume.id,
            cover_letter=cover_letter,
            metadata=ApplicationMetadata(
                generated_at=utcnow(), instruction_snapshot=instructions_text
            ),
        )
        self._save(application, is_new=True)

        self.log(f"Drafted application {application.id} for {job.title} at {job.company}")
        return application

    @staticmethod
    def build_prompt(job: Job, resume: Resume, instructions: str) -> str:
        return PromptTemplates.COVER_LETTER.format(
            title=job.title,
            company=job.company,
            description=job.description,
            required_skills=PromptTemplates.format_list(job.required_skills),
            preferred_skills=PromptTemplates.format_list(job.preferred_skills),
            experience_years=resume.experience_years if resume.experience_years is not None else "N/A",
            education="; ".join(edu.describe() for edu in resume.education) or "N/A",
            matching_skills=PromptTemplates.format_list(matching_skills(resume.skills, job)),
            instructions=PromptTemplates.format_instructions(instructions),
        )
