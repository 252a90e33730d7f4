from .course import CourseStore
from .payment import PaymentStore
from .user import UserStore
