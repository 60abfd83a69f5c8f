from dataclasses import asdict

from fastapi import APIRouter, Depends

from ..dependencies import get_manager
from ..schemas import ProfileIn, ResumeIn, ResumeOut

router = APIRouter(prefix="/resume", tags=["resume"])


@router.post("/parse", response_model=ResumeOut)
async def parse_resume(body: ResumeIn, manager=Depends(get_manager)):
    """Extract a resume's structure and the candidate profile it implies for interview setup."""
    resume = await manager.parse_resume(body.text)
    profile = resume.to_profile(target_role=body.target_role)
    return ResumeOut(resume=resume, profile=ProfileIn(**asdict(profile)))
