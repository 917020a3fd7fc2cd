"""
Collaborative projects: stars, forks, watchers, issues and pull requests.

Every write by a user is also recorded in the project's activity feed.
"""
import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from actions.users import require_user
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id, utcnow,
)
from listing import ProjectFilters, paginate, size_of
from schemas import (
    Activity, Issue, IssueIn, Project, ProjectIn, ProjectUpdate, PullRequest,
    PullRequestIn, VoteIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])

DETAIL_LIMIT = 5
RELATED_LIMIT = 3
ACTIVITY_LIMIT = 20


def record_activity(user_id: str, project_id: str, action: str, details: Optional[str] = None):
    create_document("activity", Activity(user=user_id, project=project_id, action=action, details=details))


def expand(projects: List[dict]) -> List[dict]:
    projects = populate(projects, "owner", "user", USER_PUBLIC_FIELDS)
    projects = populate(projects, "contributors", "user", USER_PUBLIC_FIELDS)
    return serialize(projects)


def latest(collection_name: str, project_id: str, limit: int, *people: str) -> List[dict]:
    docs = list(
        collection(collection_name).find({"project": project_id}).sort([("created_at", -1), ("_id", -1)]).limit(limit)
    )
    for field in people:
        docs = populate(docs, field, "user", USER_PUBLIC_FIELDS)
    return docs


def toggle_member(project_id: str, field: str, user_id: str):
    """Add or remove ``user_id`` in ``field``; returns (updated project, now a member)."""
    projects = collection("project")
    oid = to_object_id(project_id)
    updated = projects.find_one_and_update(
        {"_id": oid, field: user_id}, {"$pull": {field: user_id}}, return_document=ReturnDocument.AFTER
    )
    if updated:
        return updated, False
    updated = projects.find_one_and_update(
        {"_id": oid}, {"$addToSet": {field: user_id}}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Project not found")
    return updated, True


@router.post("")
def create_project(payload: ProjectIn):
    require_user(payload.owner)
    project = Project(**payload.model_dump(), contributors=[payload.owner])
    project_id = create_document("project", project)
    record_activity(payload.owner, project_id, "created project")
    logger.info("Project %s created by %s", project_id, payload.owner)
    return expand([collection("project").find_one({"_id": ObjectId(project_id)})])[0]


@router.get("")
def get_projects(
    user_id: str,
    q: Optional[str] = None,
    filter: Optional[str] = None,
    sort_by: str = "newest",
    page: int = Query(1, ge=1),
    page_size: int = Query(6, ge=1, le=100),
):
    require_user(user_id)
    filters = ProjectFilters(
        user_id=user_id, search_query=q, filter=filter, sort_by=sort_by, page=page, page_size=page_size,
    )
    projects, is_next = filters.run(collection("project"))
    featured, _ = paginate(
        collection("project"), filters.member_query(), [("star_count", -1)], 1, 1,
        computed={"star_count": size_of("stars")},
    )
    return {
        "projects": expand(projects),
        "featured": expand(featured)[0] if featured else None,
        "is_next": is_next,
    }


@router.get("/{project_id}")
def get_project(project_id: str, user_id: Optional[str] = None):
    project = get_or_404("project", project_id, "Project not found")
    related = collection("project").find(
        {
            "_id": {"$ne": project["_id"]},
            "$or": [{"owner": project["owner"]}, {"technologies": {"$in": project.get("technologies", [])}}],
        },
        {"name": 1, "description": 1, "technologies": 1, "owner": 1},
    ).sort([("_id", -1)]).limit(RELATED_LIMIT)

    interactions = None
    if user_id:
        interactions = {
            "is_starred": user_id in project.get("stars", []),
            "has_forked": collection("project").find_one(
                {"parent_project": project_id, "owner": user_id}, {"_id": 1}
            ) is not None,
            "is_watching": user_id in project.get("watchers", []),
        }

    return {
        "project": expand([project])[0],
        "issues": serialize(latest("issue", project_id, DETAIL_LIMIT, "creator", "assignees")),
        "pull_requests": serialize(latest("pullrequest", project_id, DETAIL_LIMIT, "creator", "reviewers")),
        "activities": serialize(latest("activity", project_id, DETAIL_LIMIT, "user")),
        "related_projects": serialize(list(related)),
        "user_interactions": interactions,
    }


@router.post("/{project_id}/star")
def star_project(project_id: str, payload: VoteIn):
    require_user(payload.user_id)
    project, starred = toggle_member(project_id, "stars", payload.user_id)
    record_activity(payload.user_id, project_id, "starred project" if starred else "unstarred project")
    return {"success": True, "is_starred": starred, "stars": len(project.get("stars", []))}


@router.post("/{project_id}/watch")
def watch_project(project_id: str, payload: VoteIn):
    require_user(payload.user_id)
    project, watching = toggle_member(project_id, "watchers", payload.user_id)
    record_activity(
        payload.user_id, project_id, "started watching project" if watching else "unwatched project"
    )
    return {"success": True, "is_watching": watching, "watchers": len(project.get("watchers", []))}


@router.post("/{project_id}/fork")
def fork_project(project_id: str, payload: VoteIn):
    require_user(payload.user_id)
    original = get_or_404("project", project_id, "Project not found")
    if collection("project").find_one({"parent_project": project_id, "owner": payload.user_id}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="You have already forked this project")

    fork = Project(
        name=f"{original['name']}-fork",
        description=original["description"],
        is_private=original.get("is_private", False),
        owner=payload.user_id,
        contributors=[payload.user_id],
        technologies=original.get("technologies", []),
        repository_url=original.get("repository_url", ""),
        demo_url=original.get("demo_url"),
        completion_percentage=original.get("completion_percentage", 0),
        parent_project=project_id,
    )
    fork_id = create_document("project", fork)
    collection("project").update_one({"_id": original["_id"]}, {"$addToSet": {"forks": payload.user_id}})

    record_activity(payload.user_id, project_id, "forked project")
    record_activity(payload.user_id, fork_id, "created fork from", original["name"])
    logger.info("Project %s forked by %s as %s", project_id, payload.user_id, fork_id)
    forked = collection("project").find_one({"_id": ObjectId(fork_id)})
    return {"success": True, "forked_project": expand([forked])[0]}


@router.patch("/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate):
    require_user(payload.user_id)
    project = get_or_404("project", project_id, "Project not found", {"owner": 1, "contributors": 1})
    if payload.user_id != project["owner"] and payload.user_id not in project.get("contributors", []):
        raise HTTPException(status_code=403, detail="You don't have permission to update this project")

    data = payload.model_dump(exclude={"user_id"}, exclude_unset=True, exclude_none=True)
    data["updated_at"] = utcnow()
    updated = collection("project").find_one_and_update(
        {"_id": project["_id"]}, {"$set": data}, return_document=ReturnDocument.AFTER
    )
    record_activity(payload.user_id, project_id, "updated project")
    return expand([updated])[0]


@router.delete("/{project_id}")
def delete_project(project_id: str, user_id: str):
    project = get_or_404("project", project_id, "Project not found", {"owner": 1})
    if user_id != project["owner"]:
        raise HTTPException(status_code=403, detail="Only the project owner can delete this project")

    for name in ("issue", "pullrequest", "activity"):
        collection(name).delete_many({"project": project_id})
    collection("project").delete_one({"_id": project["_id"]})
    logger.info("Project %s deleted by %s", project_id, user_id)
    return {"success": True}


@router.post("/{project_id}/issues")
def create_issue(project_id: str, payload: IssueIn):
    require_user(payload.user_id)
    project = get_or_404("project", project_id, "Project not found", {"_id": 1})
    issue = Issue(
        title=payload.title, description=payload.description, priority=payload.priority,
        labels=payload.labels, project=project_id, creator=payload.user_id, assignees=[payload.user_id],
    )
    issue_id = create_document("issue", issue)
    collection("project").update_one(
        {"_id": project["_id"]}, {"$addToSet": {"issues": issue_id}, "$set": {"updated_at": utcnow()}}
    )
    record_activity(payload.user_id, project_id, "created issue", payload.title)
    return serialize(collection("issue").find_one({"_id": ObjectId(issue_id)}))


@router.post("/{project_id}/pull-requests")
def create_pull_request(project_id: str, payload: PullRequestIn):
    require_user(payload.user_id)
    project = get_or_404("project", project_id, "Project not found", {"owner": 1})
    pull_request = PullRequest(
        title=payload.title, description=payload.description,
        source_branch=payload.source_branch, target_branch=payload.target_branch,
        project=project_id, creator=payload.user_id, reviewers=[project["owner"]],
    )
    pull_request_id = create_document("pullrequest", pull_request)
    collection("project").update_one(
        {"_id": project["_id"]},
        {"$addToSet": {"pull_requests": pull_request_id}, "$set": {"updated_at": utcnow()}},
    )
    record_activity(payload.user_id, project_id, "created pull request", payload.title)
    return serialize(collection("pullrequest").find_one({"_id": ObjectId(pull_request_id)}))


@router.get("/{project_id}/activities")
def get_project_activities(project_id: str):
    get_or_404("project", project_id, "Project not found", {"_id": 1})
    return {"activities": serialize(latest("activity", project_id, ACTIVITY_LIMIT, "user"))}
