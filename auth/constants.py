from datetime import timedelta


class ValidRoles:
    ATTENDEE = "attendee"
    MANAGER = "manager"

    @classmethod
    def values(cls) -> list[str]:
        return [cls.ATTENDEE, cls.MANAGER]


SESSION_KEY = "user:{user_id}:session"
SESSION_TTL = timedelta(hours=24)
