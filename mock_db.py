# mock_db.py — demo content for the review board (loaded with SEED_DEMO=1)
DB = {
    "reviews": [
        {"id": "rv1", "user_name": "Achref", "user_avatar": "https://api.dicebear.com/7.x/notionists/svg?seed=Achref",
         "rating": 5, "comment": "The exam predictor nailed three of the long questions in my biology final.",
         "date": "9/20/2025"},
        {"id": "rv2", "user_name": "Selim", "user_avatar": "https://api.dicebear.com/7.x/notionists/svg?seed=Selim",
         "rating": 4, "comment": "Tutor explains kinematics from scratch, the routine planner keeps me honest.",
         "date": "9/18/2025"},
        {"id": "rv3", "user_name": "Amira", "user_avatar": "https://api.dicebear.com/7.x/notionists/svg?seed=Amira",
         "rating": 5, "comment": "Talking to Mira before exams really helped with the stress.",
         "date": "9/15/2025"},
    ],
}
