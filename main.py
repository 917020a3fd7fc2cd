import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import database
from actions import (
    ai, answers, challenges, consulting, events, experts, jobs, knowledge_base,
    projects, questions, search, tags, users, webhooks,
)
from actions.users import create_user, generate_unique_username
from database import collection, create_document, unique_slug
from schemas import CodeChallenge, KnowledgeBaseArticle, Tag

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="DevFlow API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (users, questions, answers, tags, webhooks, knowledge_base, challenges,
               consulting, experts, events, jobs, projects, search, ai):
    app.include_router(module.router)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Something went wrong"})


@app.on_event("startup")
def create_indexes():
    if database.db is not None:
        database.ensure_indexes()
    else:
        logger.warning("DATABASE_URL not set; running without a database")


@app.get("/")
def read_root():
    return {"message": "DevFlow API running"}


@app.get("/test")
def test_database():
    db = database.db
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"

    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


# ===== Seed sample data =====
SEED_CLERK_ID = "seed-devflow"

SEED_TAGS = ["javascript", "python", "react", "nextjs", "mongodb", "fastapi"]

SEED_ARTICLES = [
    {
        "title": "Getting started with React hooks",
        "content": "<p>Hooks let function components hold state and side effects...</p>",
        "category": "tutorials",
    },
    {
        "title": "Structuring a FastAPI project",
        "content": "<p>Split routes into routers, keep schemas in one module...</p>",
        "category": "best-practices",
    },
    {
        "title": "Indexing strategies for MongoDB",
        "content": "<p>Create indexes that match your most frequent queries...</p>",
        "category": "guides",
    },
]

SEED_CHALLENGE = {
    "title": "Reverse a string",
    "description": "Write a function that returns its input string reversed.",
    "difficulty": "beginner",
    "tags": ["strings", "javascript"],
    "starter_code": "function reverse(s) {\n  // Your code here\n}",
    "test_cases": [
        {"input": "\"hello\"", "expected_output": "\"olleh\""},
        {"input": "\"\"", "expected_output": "\"\""},
        {"input": "\"ab\"", "expected_output": "\"ba\""},
    ],
}


@app.post("/api/seed")
def seed_sample():
    if database.db is None:
        raise HTTPException(status_code=400, detail="Database not configured")

    author = collection("user").find_one({"clerk_id": SEED_CLERK_ID})
    if not author:
        author = create_user(SEED_CLERK_ID, "DevFlow Team", generate_unique_username("DevFlow", "Team"), None, None)
    author_id = str(author["_id"])

    created = {"tags": 0, "articles": 0, "challenges": 0}
    for name in SEED_TAGS:
        if not collection("tag").find_one({"name": name}):
            create_document("tag", Tag(name=name))
            created["tags"] += 1

    for article in SEED_ARTICLES:
        if not collection("knowledgebasearticle").find_one({"title": article["title"]}):
            create_document("knowledgebasearticle", KnowledgeBaseArticle(
                **article, author=author_id, published=True,
                slug=unique_slug("knowledgebasearticle", article["title"]),
            ))
            created["articles"] += 1

    if not collection("codechallenge").find_one({"title": SEED_CHALLENGE["title"]}):
        create_document("codechallenge", CodeChallenge(
            **SEED_CHALLENGE,
            author=author_id, published=True,
            slug=unique_slug("codechallenge", SEED_CHALLENGE["title"]),
        ))
        created["challenges"] += 1

    logger.info("Seeded sample data: %s", created)
    return {"status": "ok", "created": created}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
