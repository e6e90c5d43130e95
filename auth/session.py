"""Redis-resident user sessions: ``user:{id}:session -> {token, role}``."""

import redis

from auth.constants import SESSION_KEY, SESSION_TTL


class SessionStore:
    def __init__(self, client: redis.Redis):
        self.client = client

    @staticmethod
    def key(user_id: int) -> str:
        return SESSION_KEY.format(user_id=user_id)

    def get(self, user_id: int) -> dict:
        return self.client.hgetall(self.key(user_id))

    def set(self, user_id: int, token: str, role: str) -> None:
        key = self.key(user_id)
        pipe = self.client.pipeline()
        pipe.hset(key, mapping={"token": token, "role": role})
        pipe.expire(key, SESSION_TTL)
        pipe.execute()

    def delete(self, user_id: int) -> None:
        self.client.delete(self.key(user_id))
