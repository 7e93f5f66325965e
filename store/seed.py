# Starter question bank, pushed to the store by `manage.py seed_quizzes`
# and loaded into the in-memory store on startup.
QUESTIONS = [
    {
        "id": 1,
        "question": "What comes after the number 5?",
        "options": ["4", "6", "7", "3"],
        "correct_answer": 1,
        "difficulty": "easy",
    },
    {
        "id": 2,
        "question": "Which animal says 'meow'?",
        "options": ["Dog", "Cat", "Bird", "Fish"],
        "correct_answer": 1,
        "difficulty": "easy",
    },
    {
        "id": 3,
        "question": "What is 3 + 5?",
        "options": ["7", "8", "9", "6"],
        "correct_answer": 1,
        "difficulty": "medium",
    },
    {
        "id": 4,
        "question": "How many sides does a triangle have?",
        "options": ["2", "3", "4", "5"],
        "correct_answer": 1,
        "difficulty": "medium",
    },
    {
        "id": 5,
        "question": "What is 4 × 6?",
        "options": ["22", "24", "26", "28"],
        "correct_answer": 1,
        "difficulty": "hard",
    },
]
