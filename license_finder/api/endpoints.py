"""
FastAPI Endpoints for License Finder
====================================
RESTful API for finding, scoring and tiering licensing partners.

Base URL: http://localhost:8000

Endpoints:
- GET    /                                      - API info
- GET    /api/health                            - Health check
- POST   /api/login                             - Sign in (sets session cookie)
- POST   /api/logout                            - Sign out
- GET    /api/projects                          - List projects
- POST   /api/projects                          - Create project
- GET    /api/projects/{id}                     - Project, completeness and candidates
- PUT    /api/projects/{id}                     - Update project intake
- DELETE /api/projects/{id}                     - Delete project
- POST   /api/projects/{id}/candidates          - Add a candidate
- POST   /api/projects/{id}/candidates/upload   - Import candidates from CSV
- DELETE /api/projects/{id}/candidates          - Remove all candidates
- POST   /api/projects/{id}/candidates/delete   - Remove selected candidates
- DELETE /api/candidates/{id}                   - Remove a candidate
- POST   /api/projects/{id}/generate            - Generate candidates (LLM)
- POST   /api/projects/{id}/research            - Research candidates without evidence
- POST   /api/candidates/{id}/evidence          - Add and summarize an evidence link
- POST   /api/evidence/{id}/summarize           - Re-summarize an evidence link
- POST   /api/projects/{id}/score               - Score candidates and re-tier project
- GET    /api/projects/{id}/results             - Tiered results
- POST   /api/projects/{id}/outreach            - Draft outreach for tier A
- POST   /api/candidates/{id}/outreach          - Draft outreach for one candidate
- PUT    /api/projects/{id}/feedback            - Project feedback
- PUT    /api/candidates/{id}/feedback          - Candidate feedback
- GET    /api/projects/{id}/export.csv          - CSV export
- GET    /projects/{id}/report                  - Printable HTML report
- GET    /api/stats                             - Engine statistics
"""

import os
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from .. import __version__
from ..auth import create_session_token, require_session, verify_password
from ..config.settings import AUTH_CONFIG
from ..engine import LicenseFinderEngine
from ..errors import (
    AuthConfigurationError,
    EntityNotFoundException,
    InvalidWeightsError,
    JudgmentValidationError,
    StructuredOutputError,
)
from ..logging_config import configure_logging

configure_logging()


# =============================================================================
# FastAPI App Initialization
# =============================================================================

app = FastAPI(
    title="License Finder API",
    description="""
## Licensing Partner Discovery

Find, research, score and tier companies that could license your brand.

### Features:
- **5-Stage Pipeline**: Research → Evidence → Scoring → Tiering → Outreach
- **Weighted Scoring**: Eight criteria, deterministic composite score
- **Tiering**: Top candidates bucketed into A/B/C with disqualifier penalties
- **CSV In & Out**: Upload candidate lists, export scorecards

### Quick Start:
1. `POST /api/login` with the operator password
2. Create a project and add or generate candidates
3. `POST /api/projects/{id}/score`, then `GET /api/projects/{id}/results`
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware - Allow all origins for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

templates = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html"]),
)


# =============================================================================
# Engine Initialization
# =============================================================================

# In-memory storage lives in the engine's store (replace with database in production)
default_engine = LicenseFinderEngine()


def get_engine() -> LicenseFinderEngine:
    return default_engine


protected = APIRouter(dependencies=[Depends(require_session)])


# =============================================================================
# Request Models
# =============================================================================

class LoginRequest(BaseModel):
    password: str = Field(..., description="Operator password")


class ProjectRequest(BaseModel):
    """Project intake"""
    name: Optional[str] = Field(None, description="Project name")
    brand_category: Optional[str] = Field(None, description="Brand category")
    product_type_sought: Optional[str] = Field(None, description="Product type sought")
    price_range: Optional[str] = Field(None, description="Price range")
    distribution_preference: Optional[str] = Field(None, description="Preferred distribution")
    geography: Optional[str] = Field(None, description="Target geography")
    positioning_keywords: Optional[str] = Field(None, description="Positioning keywords")
    constraints: Optional[str] = Field(None, description="Constraints")
    exclude_list: Optional[str] = Field(None, description="Companies to exclude, one per line")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Trailhead Drinkware",
                "brand_category": "Outdoor lifestyle",
                "product_type_sought": "Insulated drinkware",
                "price_range": "$25-$45",
                "distribution_preference": "Specialty outdoor retail",
                "geography": "US",
                "positioning_keywords": "rugged, premium, heritage",
                "exclude_list": "YETI\nStanley",
            }
        }


class CandidateRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Company name")
    website: Optional[str] = Field(None, description="Company website")
    notes: Optional[str] = Field(None, description="Free-form notes")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "MiiR",
                "website": "miir.com",
                "notes": "Design-led drinkware; co-branding history",
            }
        }


class CandidateSelection(BaseModel):
    candidate_ids: List[str] = Field(default_factory=list)


class EvidenceRequest(BaseModel):
    url: str = Field(..., min_length=1, description="Public URL")
    excerpt: Optional[str] = Field(None, description="Pasted page excerpt")


class ProjectFeedbackRequest(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None


class CandidateFeedbackRequest(BaseModel):
    misfit: bool = False
    reason: Optional[str] = None


# =============================================================================
# Health, Info & Auth Endpoints
# =============================================================================

@app.get("/", tags=["Info"])
async def root():
    """API information and available endpoints"""
    return {
        "service": "License Finder",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "Login": "POST /api/login",
            "Projects": "GET/POST /api/projects",
            "Score": "POST /api/projects/{id}/score",
            "Results": "GET /api/projects/{id}/results",
            "Export": "GET /api/projects/{id}/export.csv",
            "Health": "GET /api/health",
        }
    }


@app.get("/api/health", tags=["Info"])
async def health_check(engine: LicenseFinderEngine = Depends(get_engine)):
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": "License Finder",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
        "llm_provider": engine.llm.provider,
        "search_configured": engine.search.configured,
    }


@app.post("/api/login", tags=["Auth"])
def login(request: LoginRequest, response: Response, engine: LicenseFinderEngine = Depends(get_engine)):
    """Check the operator password and set the session cookie"""
    if not verify_password(request.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    user = engine.store.get_or_create_single_user(AUTH_CONFIG["operator_email"])
    response.set_cookie(
        key=AUTH_CONFIG["cookie_name"],
        value=create_session_token(user.user_id),
        max_age=AUTH_CONFIG["max_age_seconds"],
        httponly=True,
        samesite="lax",
        secure=AUTH_CONFIG["secure_cookie"],
        path="/",
    )
    return {"status": "ok"}


@app.post("/api/logout", tags=["Auth"])
async def logout(response: Response):
    response.delete_cookie(AUTH_CONFIG["cookie_name"], path="/")
    return {"status": "ok"}


# =============================================================================
# Project Endpoints
# =============================================================================

@protected.get("/api/projects", tags=["Projects"])
def list_projects(engine: LicenseFinderEngine = Depends(get_engine)):
    """List projects, newest first"""
    projects = engine.store.list_projects()
    return {
        "count": len(projects),
        "projects": [
            {
                **p.model_dump(mode="json"),
                "candidate_count": len(engine.store.list_candidates(p.project_id)),
                "completeness": engine.project_completeness(p),
            }
            for p in projects
        ],
    }


@protected.post("/api/projects", tags=["Projects"])
def create_project(request: ProjectRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    """Create a project"""
    project = engine.create_project(**request.model_dump())
    return {
        "project_id": project.project_id,
        "status": "created",
        "project": project.model_dump(mode="json"),
    }


@protected.get("/api/projects/{project_id}", tags=["Projects"])
def get_project(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Project with completeness and every candidate's records"""
    project = engine.store.get_project(project_id)
    feedback = engine.store.get_project_feedback(project_id)
    return {
        "project": project.model_dump(mode="json"),
        "completeness": engine.project_completeness(project),
        "candidates": [engine.candidate_view(c) for c in engine.store.list_candidates(project_id)],
        "feedback": feedback.model_dump(mode="json") if feedback else None,
    }


@protected.put("/api/projects/{project_id}", tags=["Projects"])
def update_project(project_id: str, request: ProjectRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    """Update project intake"""
    project = engine.update_project(project_id, **request.model_dump())
    return {"status": "updated", "project": project.model_dump(mode="json")}


@protected.delete("/api/projects/{project_id}", tags=["Projects"])
def delete_project(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Delete a project and everything under it"""
    engine.delete_project(project_id)
    return {"status": "deleted", "project_id": project_id}


# =============================================================================
# Candidate Endpoints
# =============================================================================

@protected.post("/api/projects/{project_id}/candidates", tags=["Candidates"])
def add_candidate(project_id: str, request: CandidateRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    """Add a candidate by hand. Names on the exclude list are ignored."""
    if not request.name.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Name is required")

    candidate = engine.add_candidate(project_id, request.name, request.website, request.notes)
    if candidate is None:
        return {"status": "excluded"}
    return {"status": "created", "candidate": candidate.model_dump(mode="json")}


@protected.post("/api/projects/{project_id}/candidates/upload", tags=["Candidates"])
async def upload_candidates(project_id: str, request: Request, engine: LicenseFinderEngine = Depends(get_engine)):
    """
    Import candidates from a raw CSV request body

    Recognized columns: name, website, notes, links. Other columns are kept
    as custom data and shown to the scoring model.
    """
    body = await request.body()
    counts = engine.import_csv(project_id, body.decode("utf-8", errors="replace"))
    return {"status": "imported", **counts}


@protected.delete("/api/projects/{project_id}/candidates", tags=["Candidates"])
def clear_candidates(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    engine.store.get_project(project_id)
    return {"status": "deleted", "deleted": engine.clear_candidates(project_id)}


@protected.post("/api/projects/{project_id}/candidates/delete", tags=["Candidates"])
def delete_candidates(project_id: str, request: CandidateSelection, engine: LicenseFinderEngine = Depends(get_engine)):
    return {"status": "deleted", "deleted": engine.delete_candidates(project_id, request.candidate_ids)}


@protected.delete("/api/candidates/{candidate_id}", tags=["Candidates"])
def delete_candidate(candidate_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    engine.delete_candidate(candidate_id)
    return {"status": "deleted", "candidate_id": candidate_id}


@protected.post("/api/projects/{project_id}/generate", tags=["Candidates"])
def generate_candidates(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Ask the model for non-obvious candidates"""
    created = engine.generate_candidates(project_id)
    return {
        "created": len(created),
        "candidates": [c.model_dump(mode="json") for c in created],
    }


# =============================================================================
# Research & Evidence Endpoints
# =============================================================================

@protected.post("/api/projects/{project_id}/research", tags=["Research"])
def research_candidates(
    project_id: str,
    request: Optional[CandidateSelection] = Body(None),
    engine: LicenseFinderEngine = Depends(get_engine),
):
    """
    Research every candidate that has no evidence yet

    Runs sequentially with a delay between candidates.
    """
    candidate_ids = request.candidate_ids if request and request.candidate_ids else None
    return engine.research_candidates(project_id, candidate_ids).model_dump(mode="json")


@protected.post("/api/candidates/{candidate_id}/evidence", tags=["Research"])
def add_evidence(candidate_id: str, request: EvidenceRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    """Attach an evidence link and summarize it"""
    link = engine.add_evidence_link(candidate_id, request.url, request.excerpt)
    if link is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid URL")
    return {"status": "created", "evidence_link": link.model_dump(mode="json", exclude={"fetched_text"})}


@protected.post("/api/evidence/{link_id}/summarize", tags=["Research"])
def summarize_evidence(link_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    link = engine.summarize_evidence(link_id)
    return {"evidence_link": link.model_dump(mode="json", exclude={"fetched_text"})}


# =============================================================================
# Scoring & Results Endpoints
# =============================================================================

@protected.post("/api/projects/{project_id}/score", tags=["Scoring"])
def score_project(
    project_id: str,
    request: Optional[CandidateSelection] = Body(None),
    engine: LicenseFinderEngine = Depends(get_engine),
):
    """
    Score candidates and re-tier the whole project

    - Candidates are scored one at a time, in the order they were added
    - A failed candidate is reported and skipped
    - `candidate_ids` limits scoring; tiers are always recomputed project-wide
    """
    candidate_ids = request.candidate_ids if request and request.candidate_ids else None
    return engine.score_and_tier_project(project_id, candidate_ids).model_dump(mode="json")


@protected.get("/api/projects/{project_id}/results", tags=["Scoring"])
def get_results(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Scored candidates grouped into tiers A, B and C"""
    tiers = engine.results(project_id)
    return {
        "project_id": project_id,
        "counts": {tier: len(entries) for tier, entries in tiers.items()},
        "tiers": tiers,
    }


# =============================================================================
# Outreach & Feedback Endpoints
# =============================================================================

@protected.post("/api/projects/{project_id}/outreach", tags=["Outreach"])
def outreach_for_a_tier(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Draft outreach for every tier A candidate"""
    drafts = engine.generate_outreach_for_a_tier(project_id)
    return {"drafted": len(drafts), "drafts": [d.model_dump(mode="json") for d in drafts]}


@protected.post("/api/candidates/{candidate_id}/outreach", tags=["Outreach"])
def outreach_for_candidate(candidate_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    draft = engine.generate_outreach(candidate_id)
    return {"draft": draft.model_dump(mode="json")}


@protected.put("/api/projects/{project_id}/feedback", tags=["Feedback"])
def project_feedback(project_id: str, request: ProjectFeedbackRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    feedback = engine.save_project_feedback(project_id, request.rating, request.notes)
    return {"feedback": feedback.model_dump(mode="json")}


@protected.put("/api/candidates/{candidate_id}/feedback", tags=["Feedback"])
def candidate_feedback(candidate_id: str, request: CandidateFeedbackRequest, engine: LicenseFinderEngine = Depends(get_engine)):
    feedback = engine.save_candidate_feedback(candidate_id, request.misfit, request.reason)
    return {"feedback": feedback.model_dump(mode="json")}


# =============================================================================
# Export, Report & Statistics
# =============================================================================

@protected.get("/api/projects/{project_id}/export.csv", tags=["Export"])
def export_csv(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    filename, text = engine.export_csv(project_id)
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@protected.get("/projects/{project_id}/report", response_class=HTMLResponse, tags=["Export"])
def project_report(project_id: str, engine: LicenseFinderEngine = Depends(get_engine)):
    """Printable report of the tiered results"""
    project = engine.store.get_project(project_id)
    html = templates.get_template("report.html").render(
        project=project,
        completeness=engine.project_completeness(project),
        tiers=engine.results(project_id),
        generated_at=datetime.utcnow(),
    )
    return HTMLResponse(content=html)


@protected.get("/api/stats", tags=["Info"])
def get_stats(engine: LicenseFinderEngine = Depends(get_engine)):
    """Get engine statistics"""
    return {
        "engine": engine.get_stats(),
        "projects": len(engine.store.projects),
        "candidates": len(engine.store.candidates),
    }


app.include_router(protected)


# =============================================================================
# Error Handlers
# =============================================================================

def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": str(exc),
            "type": type(exc).__name__,
        }
    )


@app.exception_handler(EntityNotFoundException)
async def not_found_handler(request, exc):
    return _error(404, "Not found", exc)


@app.exception_handler(AuthConfigurationError)
async def auth_configuration_handler(request, exc):
    return _error(500, "Server misconfigured", exc)


@app.exception_handler(InvalidWeightsError)
async def invalid_weights_handler(request, exc):
    return _error(422, "Invalid weights", exc)


@app.exception_handler(JudgmentValidationError)
@app.exception_handler(StructuredOutputError)
async def model_output_handler(request, exc):
    return _error(502, "Model output invalid", exc)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    return _error(500, "Internal server error", exc)
