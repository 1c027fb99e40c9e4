from qurify_node.db.tables.scores import GameProgressRow, ProfileRow, ScoreRecordRow

__all__ = [
    "ScoreRecordRow",
    "ProfileRow",
    "GameProgressRow",
]
