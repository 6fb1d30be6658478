import asyncio
import logging

from config import database_path
from db import (
    AsyncExerciseRepository,
    AsyncTemplateItemRepository,
    AsyncTemplateRepository,
)

logger = logging.getLogger(__name__)

EXERCISES = [
    ("Chest Press Machine", "upper", "machine", "Shoulder blades back, press to full extension."),
    ("Lat Pulldown", "upper", "cable", "Pull to upper chest, avoid leaning back."),
    ("Seated Cable Row", "upper", "cable", "Chest tall, squeeze shoulder blades."),
    ("Dumbbell Shoulder Press", "upper", "dumbbell", "Ribs down, press overhead."),
    ("Leg Press", "lower", "machine", "Feet shoulder width, control the descent."),
    ("Romanian Deadlift", "lower", "barbell", "Hinge at the hips, soft knees."),
    ("Leg Curl", "lower", "machine", "Hips pinned, slow negative."),
    ("Plank", "core", "bodyweight", "Straight line from head to heels."),
]

# (template name, cycle, description, [(exercise, sets, rep_min, rep_max, rest, start, increment)])
TEMPLATES = [
    (
        "Day 1 - Push & Legs",
        1,
        "Pressing and quad focus",
        [
            ("Chest Press Machine", 3, 8, 12, 90, 50.0, 5.0),
            ("Dumbbell Shoulder Press", 3, 8, 12, 90, 15.0, 5.0),
            ("Leg Press", 3, 10, 15, 120, 90.0, 10.0),
            ("Plank", 3, 30, 60, 60, 0.0, 0.0),
        ],
    ),
    (
        "Day 2 - Pull & Hinge",
        2,
        "Back and posterior chain focus",
        [
            ("Lat Pulldown", 3, 8, 12, 90, 50.0, 5.0),
            ("Seated Cable Row", 3, 8, 12, 90, 50.0, 5.0),
            ("Romanian Deadlift", 3, 8, 12, 120, 45.0, 10.0),
            ("Leg Curl", 3, 10, 15, 90, 40.0, 5.0),
        ],
    ),
]


async def seed(db_path: str) -> bool:
    """Insert the default exercises and templates into an empty database."""
    templates = AsyncTemplateRepository(db_path)
    if await templates.list_templates():
        logger.info("Database already contains templates")
        return False
    exercises = AsyncExerciseRepository(db_path)
    items = AsyncTemplateItemRepository(db_path)
    ids: dict[str, int] = {}
    for name, category, equipment, cues in EXERCISES:
        ids[name] = await exercises.add(name, category, equipment, form_cues=cues)
    for name, cycle, description, entries in TEMPLATES:
        template_id = await templates.create(name, cycle, description)
        for order, (ex, sets, rep_min, rep_max, rest, start, inc) in enumerate(entries, 1):
            await items.add(
                template_id,
                ids[ex],
                order,
                sets,
                rep_min,
                rep_max,
                rest_seconds=rest,
                start_weight=start,
                increment=inc,
            )
    logger.info("Seeded %s exercises and %s templates", len(EXERCISES), len(TEMPLATES))
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed(database_path()))
