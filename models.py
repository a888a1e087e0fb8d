from extensions import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash


# ============================
# USER MODEL
# ============================
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)

    # Profile metadata
    full_name = db.Column(db.String(120))
    avatar_url = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.now)
    last_sign_in_at = db.Column(db.DateTime)

    # Relationships
    collections = db.relationship('Collection', backref='user', lazy=True, cascade='all, delete-orphan')
    journals = db.relationship('JournalEntry', backref='user', lazy=True, cascade='all, delete-orphan')

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password, password or '')

    @property
    def display_name(self):
        return self.full_name or self.username


# ============================
# COLLECTION MODEL
# ============================
class Collection(db.Model):
    __tablename__ = 'collections'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    # Tailwind colour token, e.g. "bg-blue-500"
    color = db.Column(db.String(40), default='bg-blue-500')
    icon = db.Column(db.String(16))

    created_at = db.Column(db.DateTime, default=datetime.now)

    journals = db.relationship('JournalEntry', back_populates='collection', lazy=True)


# ============================
# JOURNAL ENTRY MODEL
# ============================
class JournalEntry(db.Model):
    __tablename__ = 'journals'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    collection_id = db.Column(db.Integer, db.ForeignKey('collections.id', ondelete='SET NULL'), nullable=True)

    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text)       # rich-text (HTML) body
    plain_text = db.Column(db.Text)    # derived, used for search and word counts
    is_favorite = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime)

    collection = db.relationship('Collection', back_populates='journals')
    journal_moods = db.relationship('JournalMood', backref='journal', lazy=True,
                                    cascade='all, delete-orphan', order_by='JournalMood.id')
    journal_tags = db.relationship('JournalTag', backref='journal', lazy=True,
                                   cascade='all, delete-orphan', order_by='JournalTag.id')

    @property
    def mood(self):
        """Only the first mood row is ever read."""
        return self.journal_moods[0] if self.journal_moods else None

    @property
    def tags(self):
        return [t.tag for t in self.journal_tags]


class JournalMood(db.Model):
    __tablename__ = 'journal_moods'

    id = db.Column(db.Integer, primary_key=True)
    journal_id = db.Column(db.Integer, db.ForeignKey('journals.id'), nullable=False)

    emoji = db.Column(db.String(16))
    label = db.Column(db.String(50), nullable=False)
    intensity = db.Column(db.Integer, default=3, nullable=False)

    @property
    def display(self):
        return f"{self.emoji} {self.label}" if self.emoji else self.label


class JournalTag(db.Model):
    __tablename__ = 'journal_tags'

    id = db.Column(db.Integer, primary_key=True)
    journal_id = db.Column(db.Integer, db.ForeignKey('journals.id'), nullable=False)
    tag = db.Column(db.String(50), nullable=False)


# ============================
# PROMPTS AND PREFERENCES
# ============================
class Prompt(db.Model):
    __tablename__ = 'prompts'

    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50))
    mood = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.now)


class UserPreference(db.Model):
    __tablename__ = 'user_preferences'
    __table_args__ = (db.UniqueConstraint('user_id', 'key', name='uq_user_preference_key'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Text)  # JSON encoded
