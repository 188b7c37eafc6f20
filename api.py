from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import os
import logging
from dotenv import load_dotenv

from questions.errors import QuestionsError
from questions.routes import forms, misc, twenty_q
from questions.utils.logging_config import setup_logging

# Load environment variables
load_dotenv()

# Setup logging
logger = setup_logging()

# Initialize FastAPI app
app = FastAPI(
    title="Questions API",
    description="Feedback forms with skip logic and the 20 Questions goal-discovery agent",
    version="1.0.0"
)

# Published form pages post to /api/collect from their own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(forms.router)
app.include_router(twenty_q.router)
app.include_router(misc.router)


# Health check endpoint
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "Questions API",
        "version": "1.0.0",
        "workflow": "LangGraph"
    }


# Debug endpoint for workflow visualization
@app.get("/api/workflow-graph")
async def get_workflow_graph():
    """Mermaid diagram of the 20 Questions step graph"""
    from workflow.graph import create_workflow
    graph = create_workflow()
    return {
        "graph": graph.get_graph().draw_mermaid(),
        "nodes": ["intake", "check_limits", "generate_question", "summarize_goal", "finalize_max_turns"],
        "description": "LangGraph workflow for one 20 Questions step"
    }


@app.exception_handler(QuestionsError)
async def questions_exception_handler(request: Request, exc: QuestionsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


# Error handler
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# Run the server
if __name__ == "__main__":
    if not os.getenv("OPENAI_API_KEY"):
        logger.warning("OPENAI_API_KEY not found in environment, 20 Questions endpoints will fail")
    if not os.getenv("GITHUB_TOKEN"):
        logger.warning("GITHUB_TOKEN not found in environment, form storage endpoints will fail")

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting Questions API on http://0.0.0.0:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
