# seed.py
from models import User, Collection, JournalEntry, JournalMood, JournalTag
from app import app, db, seed_default_prompts
from datetime import datetime, timedelta
import random


# Create some example users
users = [
    User(username="emma", email="emma@example.com", full_name="Emma Stone"),
    User(username="koen", email="koen@example.com", full_name="Koen de Vries"),
]

# Set passwords using the hashing method (REQUIRED for login to work)
users[0].set_password("emma")
users[1].set_password("koen")

collection_specs = [
    ("Daily Reflections", "Short notes at the end of the day", "bg-purple-500", "🌙"),
    ("Work", "Projects, wins and frustrations", "bg-blue-500", "💼"),
    ("Gratitude", "Small good things", "bg-emerald-500", "🌱"),
]

moods = [
    ("😊", "Happy", 4), ("😢", "Sad", 2), ("😰", "Anxious", 3),
    ("😐", "Neutral", 3), ("⚡", "Ambitious", 5),
]

tags = ["work", "family", "health", "sleep", "friends", "reading", "focus"]

# Seed database
with app.app_context():
    db.drop_all()
    db.create_all()
    seed_default_prompts()

    db.session.add_all(users)
    db.session.commit()

    for user in users:
        collections = [
            Collection(user_id=user.id, title=t, description=d, color=c, icon=i)
            for t, d, c, i in collection_specs
        ]
        db.session.add_all(collections)
        db.session.commit()

        # two weeks of entries with a gap so streaks are interesting
        for i in range(14):
            if i == 4:
                continue
            emoji, label, intensity = random.choice(moods)
            collection = random.choice(collections + [None])
            created = datetime.now() - timedelta(days=i, hours=random.randint(0, 6))
            body = f"Day {i + 1}: feeling {label.lower()} today. " * random.randint(3, 12)
            entry = JournalEntry(
                user_id=user.id,
                collection_id=collection.id if collection else None,
                title=f"{label} day",
                content=f"<p>{body.strip()}</p>",
                plain_text=body.strip(),
                is_favorite=random.random() > 0.8,
                created_at=created,
            )
            entry.journal_moods.append(JournalMood(emoji=emoji, label=label, intensity=intensity))
            for tag in random.sample(tags, random.randint(0, 3)):
                entry.journal_tags.append(JournalTag(tag=tag))
            db.session.add(entry)
    db.session.commit()

    print("\n\n✅ Dummy data added successfully!")
    print(f"Created {len(users)} users:")
    for user in users:
        print(f"  - Username: {user.username}, Password: (same as username)")
