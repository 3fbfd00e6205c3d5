"""
Routine and pose catalog.
"""
from dataclasses import asdict, dataclass


@dataclass
class Pose:
    name: str
    sanskrit_name: str
    difficulty: str         # 'beginner' | 'intermediate' | 'advanced'
    goal_category: str      # 'flexibility' | 'strength' | 'relaxation' | 'balance'
    benefits: str


POSES: list[Pose] = [
    Pose("Mountain Pose",       "Tadasana",             "beginner",     "balance",     "Improves posture and grounding"),
    Pose("Downward Dog",        "Adho Mukha Svanasana", "beginner",     "flexibility", "Stretches hamstrings, calves and shoulders"),
    Pose("Child's Pose",        "Balasana",             "beginner",     "relaxation",  "Releases the lower back and calms the mind"),
    Pose("Cat-Cow",             "Marjaryasana",         "beginner",     "flexibility", "Mobilises the spine"),
    Pose("Warrior I",           "Virabhadrasana I",     "intermediate", "strength",    "Builds leg strength and opens the hips"),
    Pose("Warrior II",          "Virabhadrasana II",    "intermediate", "strength",    "Strengthens legs and improves stamina"),
    Pose("Tree Pose",           "Vrksasana",            "intermediate", "balance",     "Develops focus and ankle stability"),
    Pose("Side Plank",          "Vasisthasana",         "intermediate", "strength",    "Strengthens wrists, arms and obliques"),
    Pose("Boat Pose",           "Navasana",             "intermediate", "strength",    "Builds core strength"),
    Pose("Seated Forward Fold", "Paschimottanasana",    "beginner",     "relaxation",  "Calms the nervous system"),
    Pose("Crow Pose",           "Bakasana",             "advanced",     "balance",     "Strengthens arms and core"),
    Pose("Legs Up the Wall",    "Viparita Karani",      "beginner",     "relaxation",  "Restorative inversion that eases tired legs"),
    Pose("Corpse Pose",         "Savasana",             "beginner",     "relaxation",  "Complete rest and integration"),
]


def get_pose(index: int) -> dict | None:
    if index < 0 or index >= len(POSES):
        return None
    return {**asdict(POSES[index]), "id": index}


def poses_by_category(category: str) -> list[dict]:
    return [asdict(p) for p in POSES if p.goal_category.lower() == category.lower()]


def poses_by_difficulty(difficulty: str) -> list[dict]:
    return [asdict(p) for p in POSES if p.difficulty.lower() == difficulty.lower()]


def all_poses() -> list[dict]:
    return [asdict(p) for p in POSES]


# Seeded into the in-memory store at startup. Pose durations are in seconds.
SAMPLE_ROUTINES: list[dict] = [
    {
        "name": "Morning Flow",
        "description": "Start your day with gentle stretches and energizing poses. "
                       "Perfect for building flexibility and setting positive intentions.",
        "duration": 15,
        "difficulty": "beginner",
        "category": "morning",
        "poses": [
            {"name": "Mountain Pose", "duration": 30, "instructions": "Stand tall with feet hip-width apart"},
            {"name": "Sun Salutation A", "duration": 120, "instructions": "Flow through the classic sun salutation sequence"},
            {"name": "Downward Dog", "duration": 60, "instructions": "Press hands down, lift hips up"},
            {"name": "Child's Pose", "duration": 60, "instructions": "Rest in child's pose to center yourself"},
        ],
    },
    {
        "name": "Strength Builder",
        "description": "Build core strength and muscle tone with challenging poses that push "
                       "your limits while maintaining proper alignment.",
        "duration": 25,
        "difficulty": "intermediate",
        "category": "strength",
        "poses": [
            {"name": "Warrior I", "duration": 45, "instructions": "Strong standing pose with arms raised"},
            {"name": "Warrior II", "duration": 45, "instructions": "Open hip warrior with arms extended"},
            {"name": "Side Plank", "duration": 30, "instructions": "Balance on one arm, stack feet"},
            {"name": "Crow Pose", "duration": 30, "instructions": "Arm balance with knees on upper arms"},
            {"name": "Boat Pose", "duration": 45, "instructions": "V-shape balance pose for core strength"},
        ],
    },
    {
        "name": "Evening Calm",
        "description": "Wind down with restorative poses and breathing exercises designed to "
                       "reduce stress and prepare for restful sleep.",
        "duration": 20,
        "difficulty": "all levels",
        "category": "evening",
        "poses": [
            {"name": "Cat-Cow", "duration": 60, "instructions": "Gentle spinal movement to release tension"},
            {"name": "Seated Forward Fold", "duration": 90, "instructions": "Calm the nervous system with forward bending"},
            {"name": "Legs Up the Wall", "duration": 180, "instructions": "Restorative inversion for relaxation"},
            {"name": "Savasana", "duration": 300, "instructions": "Complete rest and integration"},
        ],
    },
]
