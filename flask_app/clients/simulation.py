"""Offline stand-ins for the transcription and translation providers.

Used when no provider key is configured so the whole pipeline can be run
locally. The transcript is a fixed ten-segment Arabic sample.
"""
import logging
from pathlib import Path
from typing import List, Sequence

from models.segment import TimedSegment

logger = logging.getLogger(__name__)

SAMPLE_SEGMENTS = (
    (0.0, 3.2, "مرحبا بكم في هذا الفيديو التعليمي",
     "Welcome to this educational video"),
    (3.5, 7.8, "اليوم سنتحدث عن أهمية اللغة العربية في العالم الرقمي",
     "Today we will talk about the importance of the Arabic language in the digital world"),
    (8.1, 14.5, "تعتبر اللغة العربية من أكثر اللغات انتشارًا على مستوى العالم",
     "Arabic is one of the most widely spoken languages in the world"),
    (15.0, 20.3, "وهناك أكثر من ٤٢٢ مليون شخص يتحدثون اللغة العربية كلغة أولى",
     "More than 422 million people speak Arabic as a first language"),
    (21.0, 27.5, "في هذا الفيديو، سنتعلم كيفية استخدام التكنولوجيا لدعم المحتوى العربي",
     "In this video, we will learn how to use technology to support Arabic content"),
    (28.0, 35.2, "ومن أهم التطورات الحديثة في هذا المجال هي أنظمة التعرف على الكلام والترجمة الآلية",
     "Among the most important recent developments in this field are speech recognition and machine translation systems"),
    (36.0, 42.5, "لقد تحسنت هذه الأنظمة بشكل كبير في السنوات الأخيرة بفضل تقنيات الذكاء الاصطناعي",
     "These systems have improved greatly in recent years thanks to artificial intelligence"),
    (43.0, 48.8, "الآن يمكننا تحويل الكلام العربي المنطوق إلى نص مكتوب بدقة عالية",
     "Now we can convert spoken Arabic into written text with high accuracy"),
    (49.3, 55.7, "كما يمكننا ترجمة هذا النص إلى لغات أخرى مثل الإنجليزية بسهولة",
     "We can also easily translate this text into other languages such as English"),
    (56.2, 63.5, "هذه التقنيات تساعد في نشر المحتوى العربي على نطاق أوسع وتسهيل الوصول إليه",
     "These technologies help spread Arabic content more widely and make it easier to access"),
)

_KNOWN_TRANSLATIONS = {source: target for _, _, source, target in SAMPLE_SEGMENTS}


class SimulatedTranscriptionClient:
    def transcribe_segments(self, audio_path: Path, language: str = "ar") -> List[TimedSegment]:
        logger.info("Returning simulated transcription for %s", Path(audio_path).name)
        return [TimedSegment(start, end, text) for start, end, text, _ in SAMPLE_SEGMENTS]


class SimulatedTranslationClient:
    def translate_lines(self, lines: Sequence[str], source_language: str,
                        target_language: str) -> List[str]:
        return [
            _KNOWN_TRANSLATIONS.get(line, f"[{target_language}] {line}") for line in lines
        ]
