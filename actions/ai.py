import logging

from fastapi import APIRouter
from openai import OpenAI, OpenAIError

import config
from schemas import AIQuestionIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

SYSTEM_PROMPT = (
    "You are a helpful assistant on a developer Q&A forum. "
    "Answer programming questions accurately and concisely, with code where it helps."
)
FALLBACK_NOTE = "This is a fallback response because the AI service is currently unavailable."

openai_client = OpenAI(api_key=config.OPENAI_API_KEY, max_retries=2) if config.OPENAI_API_KEY else None


def fallback_reply(question: str) -> str:
    lowered = question.lower()
    if "code" in lowered or "program" in lowered:
        return (
            f'Here\'s some code that might help with your programming question about "{question}":\n\n'
            "```javascript\nfunction example() {\n  console.log(\"This is a sample code example\");\n"
            "  return \"It works!\";\n}\n```\n\nHope this helps!"
        )
    if "explain" in lowered or "what is" in lowered:
        return (
            f'The concept of "{question}" can be explained as follows:\n\n'
            "1. First, understand the basics\n2. Then, apply the principles\n3. Finally, practice regularly"
        )
    return f'I\'d be happy to help with your question about "{question}".'


@router.post("/answer")
def generate_answer(payload: AIQuestionIn):
    if openai_client is None:
        return {"reply": fallback_reply(payload.question), "note": FALLBACK_NOTE}
    try:
        completion = openai_client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": payload.question},
            ],
            temperature=0.7,
            max_tokens=600,
        )
        return {"reply": (completion.choices[0].message.content or "").strip()}
    except OpenAIError:
        logger.exception("AI answer generation failed")
        return {"reply": fallback_reply(payload.question), "note": FALLBACK_NOTE}
