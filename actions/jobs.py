import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Query

from database import collection, create_document, serialize
from listing import JobFilters
from schemas import Job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("")
def create_job(payload: Job):
    job_id = create_document("job", payload)
    logger.info("Job %s posted by %s", job_id, payload.employer_name)
    return serialize(collection("job").find_one({"_id": ObjectId(job_id)}))


@router.get("")
def list_jobs(
    q: Optional[str] = None,
    country: Optional[str] = None,
    employment_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    filters = JobFilters(
        search_query=q, country=country, employment_type=employment_type, page=page, page_size=page_size,
    )
    jobs, is_next = filters.run(collection("job"))
    return {"jobs": serialize(jobs), "is_next": is_next}


@router.get("/countries")
def list_job_countries():
    countries = collection("job").distinct("country")
    return {"countries": sorted(c for c in countries if c)}
