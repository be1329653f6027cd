"""Application configuration objects."""

import os
import sys
from typing import Dict, List, Tuple
from dotenv import load_dotenv

if getattr(sys, "frozen", False):
    load_dotenv(os.path.join(sys._MEIPASS, ".env"))
else:
    load_dotenv()


class Config:
    """Base configuration for the survey explorer."""

    # -------------------------
    # Data paths
    # -------------------------
    # DuckDB database file (":memory:" keeps everything in process)
    DUCKDB_PATH = os.getenv("SURVEY_DUCKDB_PATH", ":memory:")

    # Survey extract, parquet or csv
    DATA_PATH = os.getenv("SURVEY_DATA_PATH", "data/survey.parquet")

    # Optional remote parquet used when DATA_PATH is missing
    DATA_URL = os.getenv("SURVEY_DATA_URL")
    DATA_API_KEY = os.getenv("SURVEY_DATA_API_KEY")

    # -------------------------
    # Data schema
    # -------------------------
    TABLE_NAME = os.getenv("SURVEY_TABLE_NAME", "survey")
    LIST_SEPARATOR = os.getenv("SURVEY_LIST_SEPARATOR", ",")

    # id -> (label, multi_valued)
    DIMENSIONS: Dict[str, Tuple[str, bool]] = {
        "role": ("Role", False),
        "org_size": ("Org Size", False),
        "industry": ("Industry", False),
        "region": ("Region", False),
        "ai_usage_frequency": ("AI Usage", False),
        "storage_environment": ("Storage", False),
        "architecture_trend": ("Architecture", False),
        "team_growth_2026": ("Team Growth", False),
        "biggest_bottleneck": ("Bottleneck", False),
        "pain_points": ("Pain Points", True),
    }

    # -------------------------
    # UI filters
    # -------------------------
    FILTER_DIMENSIONS: List[str] = [
        "role",
        "org_size",
        "industry",
        "region",
        "ai_usage_frequency",
    ]

    # Free-text search matches any of these columns
    SEARCH_COLUMNS: List[str] = [
        "role",
        "industry",
        "region",
        "biggest_bottleneck",
        "pain_points",
    ]

    # -------------------------
    # Charts & crosstab
    # -------------------------
    CHARTS: Dict[str, int] = {
        "role": 8,
        "org_size": 8,
        "industry": 8,
        "ai_usage_frequency": 8,
        "storage_environment": 8,
        "architecture_trend": 8,
        "team_growth_2026": 8,
        "biggest_bottleneck": 8,
    }

    CHART_COLORS: List[str] = [
        "#58a6ff",
        "#3fb950",
        "#d29922",
        "#f85149",
        "#a371f7",
        "#db61a2",
        "#79c0ff",
        "#7ee787",
    ]

    DEFAULT_PIVOT: Tuple[str, str] = ("role", "region")
    DEFAULT_METRIC = "count"

    # Heatmap base colour (r, g, b)
    HEATMAP_RGB: Tuple[int, int, int] = (88, 166, 255)


__all__ = ["Config"]
