import json
import sqlite3
import uuid
from typing import Any, Optional

from clearpolicy_core.models import Answer


def init_database(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS conversations (
            conversation_id TEXT PRIMARY KEY,
            policy_name TEXT,
            level TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS messages (
            message_id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            role TEXT NOT NULL,
            content TEXT,
            answer_json TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (conversation_id) REFERENCES conversations(conversation_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS source_citations (
            citation_id INTEGER PRIMARY KEY AUTOINCREMENT,
            message_id INTEGER NOT NULL,
            source_number INTEGER,
            title TEXT,
            url TEXT,
            domain TEXT,
            source_type TEXT,
            verified INTEGER DEFAULT 0,
            FOREIGN KEY (message_id) REFERENCES messages(message_id)
        )
    ''')

    # Indexes
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_citations_message ON source_citations(message_id)')

    conn.commit()
    return conn


class ConversationStore:
    """
    Conversation, message and source-citation records in SQLite.

    Each call opens its own connection so the store can be used from a
    worker thread (the synthesizer saves turns with asyncio.to_thread).
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_database(db_path).close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def create_conversation(self, policy_name: str, level: str = "State") -> str:
        conversation_id = uuid.uuid4().hex
        conn = self._connect()
        try:
            conn.execute(
                'INSERT INTO conversations (conversation_id, policy_name, level) VALUES (?, ?, ?)',
                (conversation_id, policy_name, level)
            )
            conn.commit()
        finally:
            conn.close()
        return conversation_id

    def save_turn(self, conversation_id: str, query: str, answer: Answer) -> int:
        """Store the user query and the assistant answer; returns the answer's message id."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                'INSERT INTO messages (conversation_id, role, content) VALUES (?, ?, ?)',
                (conversation_id, "user", query)
            )
            cursor.execute(
                'INSERT INTO messages (conversation_id, role, content, answer_json) VALUES (?, ?, ?, ?)',
                (
                    conversation_id,
                    "assistant",
                    answer.full_text_summary,
                    json.dumps(answer.model_dump(by_alias=True)),
                )
            )
            message_id = cursor.lastrowid
            cursor.executemany(
                '''INSERT INTO source_citations
                   (message_id, source_number, title, url, domain, source_type, verified)
                   VALUES (?, ?, ?, ?, ?, ?, ?)''',
                [
                    (message_id, s.id, s.title, s.url, s.domain, s.type, int(s.verified))
                    for s in answer.sources
                ]
            )
            cursor.execute(
                'UPDATE conversations SET updated_at = CURRENT_TIMESTAMP WHERE conversation_id = ?',
                (conversation_id,)
            )
            conn.commit()
        finally:
            conn.close()
        return message_id

    def save_answer_turn(self, query: str, answer: Answer) -> str:
        conversation_id = self.create_conversation(answer.policy_name, answer.level)
        self.save_turn(conversation_id, query, answer)
        return conversation_id

    def get_conversation(self, conversation_id: str) -> Optional[dict[str, Any]]:
        conn = self._connect()
        try:
            row = conn.execute(
                'SELECT conversation_id, policy_name, level, created_at, updated_at '
                'FROM conversations WHERE conversation_id = ?',
                (conversation_id,)
            ).fetchone()
        finally:
            conn.close()

        if row:
            return {
                "conversation_id": row[0],
                "policy_name": row[1],
                "level": row[2],
                "created_at": row[3],
                "updated_at": row[4],
            }
        return None

    def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        conn = self._connect()
        try:
            rows = conn.execute(
                'SELECT message_id, role, content, answer_json FROM messages '
                'WHERE conversation_id = ? ORDER BY message_id',
                (conversation_id,)
            ).fetchall()
            messages = []
            for message_id, role, content, answer_json in rows:
                sources = conn.execute(
                    'SELECT source_number, title, url, domain, source_type, verified '
                    'FROM source_citations WHERE message_id = ? ORDER BY source_number',
                    (message_id,)
                ).fetchall()
                messages.append({
                    "message_id": message_id,
                    "role": role,
                    "content": content,
                    "answer": json.loads(answer_json) if answer_json else None,
                    "sources": [
                        {
                            "id": s[0],
                            "title": s[1],
                            "url": s[2],
                            "domain": s[3],
                            "type": s[4],
                            "verified": bool(s[5]),
                        }
                        for s in sources
                    ],
                })
        finally:
            conn.close()
        return messages
