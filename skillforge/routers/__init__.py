from .ai import router as ai_router
from .auth import router as auth_router
from .course import router as course_router
from .payment import router as payment_router
from .user import router as user_router

routes = [
    auth_router,
    user_router,
    course_router,
    payment_router,
    ai_router,
]
