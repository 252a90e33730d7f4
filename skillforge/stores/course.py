from typing import Iterator, List, Optional

from skillforge.core.store import EntityStore
from skillforge.models.course import Course
from skillforge.schemas.course import CourseFilter


class CourseStore(EntityStore[Course]):
    model = Course
    id_prefix = "course"

    def search(
        self,
        filters: CourseFilter,
        include_unpublished: bool = False,
        visible_to: Optional[str] = None,
    ) -> Iterator[Course]:
        """
        Scan courses matching every set filter field.

        Drafts are skipped unless include_unpublished is set; drafts owned by
        visible_to are always kept.
        """
        predicates = []

        if not include_unpublished:
            predicates.append(
                lambda c: c.is_published
                or (visible_to is not None and c.instructor_id == visible_to)
            )
        if filters.category:
            predicates.append(lambda c: c.category == filters.category)
        if filters.subcategory:
            predicates.append(lambda c: c.subcategory == filters.subcategory)
        if filters.level is not None:
            predicates.append(lambda c: c.level == filters.level)
        if filters.instructor_id:
            predicates.append(lambda c: c.instructor_id == filters.instructor_id)
        if filters.price_min is not None:
            predicates.append(lambda c: c.price >= filters.price_min)
        if filters.price_max is not None:
            predicates.append(lambda c: c.price <= filters.price_max)
        if filters.rating is not None:
            predicates.append(lambda c: c.rating >= filters.rating)
        if filters.tags:
            wanted = {tag.lower() for tag in filters.tags}
            predicates.append(lambda c: wanted & {tag.lower() for tag in c.tags})
        if filters.search:
            needle = filters.search.lower()
            predicates.append(
                lambda c: needle in c.title.lower()
                or needle in c.description.lower()
                or any(needle in tag.lower() for tag in c.tags)
            )

        return self.find_by(*predicates)

    def find_by_instructor(self, instructor_id: str) -> List[Course]:
        return list(self.find_by(lambda c: c.instructor_id == instructor_id))

    def increment_enrollment(self, course_id: str) -> Optional[Course]:
        with self.locked():
            course = self.find_by_id(course_id)
            if course is None:
                return None
            return self.update(
                course_id, {"enrollment_count": course.enrollment_count + 1}
            )

    def correct_stats(self, course_id: str, corrections: dict) -> Optional[Course]:
        """Administrative overwrite of rating, review or enrollment counters."""
        allowed = {"rating", "review_count", "enrollment_count"}
        return self.update(
            course_id, {k: v for k, v in corrections.items() if k in allowed}
        )
