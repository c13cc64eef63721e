"""Guided DARE panic-response flow (Defuse, Allow, Run toward, Engage)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DareStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    instruction: str
    audio_text: str


DARE_STEPS: tuple[DareStep, ...] = (
    DareStep(
        id="defuse",
        title="نزع الفتيل (Defuse)",
        instruction='لا تقلق، هذا مجرد أدرينالين. قل لنفسك: "ليكن، أنا مستعد لهذا الشعور".',
        audio_text="لا تقلق، ما تشعر به هو مجرد استجابة جسدية طبيعية. إنه الأدرينالين يتحدث.",
    ),
    DareStep(
        id="allow",
        title="التقبل (Allow)",
        instruction="اسمح للرجفة أو الضيق، لا تقاومها. تقبّل وجود القلق كضيف عابر.",
        audio_text="اسمح لهذه الأحاسيس بالبقاء. لا تحاول طردها. كلما سمحت لها، كلما فقدت قوتها.",
    ),
    DareStep(
        id="run_toward",
        title="التحدي (Run Toward)",
        instruction='اطلب المزيد! قل لهلوعك: "هل هذا كل ما لديك؟ أعطني المزيد!"',
        audio_text="اركض نحو القلق. اطلب منه المزيد. قل له: أرني أسوأ ما عندك. أنت أقوى منه.",
    ),
    DareStep(
        id="engage",
        title="الانخراط (Engage)",
        instruction="الآن، عد للتركيز في عملك أو ما كنت تفعله بوعي كامل.",
        audio_text="الآن، عد إلى لحظتك الحالية. ما الذي تفعله الآن؟ ركز حواسك فيه بالكامل.",
    ),
)


class DareFlow:
    """Step cursor over DARE_STEPS, clamped at both ends."""

    def __init__(self, steps: tuple[DareStep, ...] = DARE_STEPS) -> None:
        if not steps:
            raise ValueError("DareFlow needs at least one step")
        self.steps = steps
        self.index = 0

    @property
    def current(self) -> DareStep:
        return self.steps[self.index]

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index == len(self.steps) - 1

    @property
    def progress(self) -> tuple[int, int]:
        """(1-based position, total) for the step indicator."""
        return self.index + 1, len(self.steps)

    def next(self) -> DareStep:
        if not self.is_last:
            self.index += 1
        return self.current

    def previous(self) -> DareStep:
        if not self.is_first:
            self.index -= 1
        return self.current
