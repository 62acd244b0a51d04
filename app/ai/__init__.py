"""
Project Planner
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, JSON mode, usage logging)
    - prompt_registry: YAML prompt template loading
    - composer: project data → prompt text
    - schemas: pydantic contracts for completion payloads
"""
