from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse

import main

app = FastAPI(title="flappy-evolution service", version="1.0.0")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
def root() -> HTMLResponse:
        html = """
<!doctype html>
<html lang="en">
    <head>
        <meta charset="utf-8" />
        <meta name="viewport" content="width=device-width, initial-scale=1" />
        <title>flappy-evolution</title>
    </head>
    <body style="font-family: system-ui, sans-serif; margin: 2rem; line-height: 1.5;">
        <h1 style="margin: 0 0 0.5rem 0;">flappy-evolution</h1>
        <p style="margin-top: 0;">A flock of flappy birds learning to thread pipes, run headless on demand.</p>
        <ul>
            <li><a href="/simulate?seed=42&generations=5&population=20">/simulate?seed=42&generations=5&population=20</a></li>
            <li><a href="/docs">/docs</a></li>
            <li><a href="/health">/health</a></li>
        </ul>
    </body>
</html>
"""
        return HTMLResponse(content=html)


@app.get("/simulate")
def simulate(
    seed: int = Query(default=42, ge=0, description="Random seed for deterministic run"),
    generations: int = Query(default=5, ge=1, le=50, description="Generations to train"),
    population: int = Query(default=20, le=200, description="Birds per generation"),
) -> dict[str, object]:
    try:
        history = main.simulate_history(seed=seed, generations=generations, population_size=population)
    except main.ConfigurationError as error:
        raise HTTPException(status_code=422, detail=str(error)) from error

    return {
        "seed": seed,
        "population": population,
        "generations": [
            {
                "generation": summary.generation,
                "best_fitness": summary.best_fitness,
                "avg_fitness": summary.avg_fitness,
                "best_parameters": dict(zip(main.GENE_NAMES, summary.best_parameters.as_list())),
            }
            for summary in history
        ],
    }
