from fastapi import Request

from skillforge.stores import CourseStore, PaymentStore, UserStore


class Database:
    """The three entity stores, created once per application."""

    def __init__(self):
        self.users = UserStore()
        self.courses = CourseStore()
        self.payments = PaymentStore()

    def reset(self) -> None:
        self.users.clear()
        self.courses.clear()
        self.payments.clear()


def get_db(request: Request) -> Database:
    return request.app.state.db
