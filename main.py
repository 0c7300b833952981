"""Entry point for the Video Notes Engine."""

if __name__ == "__main__":
    import uvicorn
    from vidnotes.core.config import settings

    print(f"Starting {settings.api_title} v{settings.api_version}")
    print(f"Generation model: {settings.generation_model} (vision: {settings.vision_model})")
    print(f"Max concurrent generations: {settings.max_concurrent_generations}")
    print(f"Log level: {settings.log_level}")

    uvicorn.run(
        "vidnotes.main:app",  # Use string import for hot reload
        host="0.0.0.0",
        port=8000,
        reload=settings.debug_mode,
        log_level=settings.log_level.lower()
    )
