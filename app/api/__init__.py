"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import agent, ai

router = APIRouter()

# Analysis jobs, provider settings, persona
router.include_router(ai.router, prefix="/ai", tags=["ai"])

# Agent posting path
router.include_router(agent.router, prefix="/agent", tags=["agent"])
