import random


class CandidateSelector:
    """
    Случайный выбор кандидатов без повторений.

    Источник случайности передается явно, чтобы тесты могли подставить
    детерминированный генератор.
    """

    def __init__(self, rng: random.Random = None):
        self.rng = rng if rng is not None else random.Random()

    def select(self, candidates, count: int) -> list:
        """
        Выбирает min(count, len(candidates)) кандидатов равновероятно.

        Если выбирать не из чего (кандидатов не больше, чем нужно),
        возвращает всех кандидатов в исходном порядке без обращения к генератору.
        """
        candidates = list(candidates)
        if count <= 0 or not candidates:
            return []

        if count >= len(candidates):
            return candidates

        return self.rng.sample(candidates, count)

    def select_one(self, candidates):
        selected = self.select(candidates, 1)
        return selected[0] if selected else None
