"""Speech capabilities and the announcement sink."""

import asyncio
import subprocess
import threading
from typing import Callable, Optional

from .config import CONFIG
from .errors import AnnouncementUnsupported, SpeechInputUnsupported
from .logger import Logger


class SpeechOutput:
    """Text-to-speech capability"""

    def speak(self, text: str):
        raise NotImplementedError


class NullSpeechOutput(SpeechOutput):
    """For platforms without speech synthesis"""

    def speak(self, text: str):
        raise AnnouncementUnsupported("speech synthesis unavailable")


class EspeakOutput(SpeechOutput):
    """espeak (available in Termux), falling back to pyttsx3"""

    def __init__(self, lang: Optional[str] = None, rate: Optional[int] = None):
        self.lang = lang or CONFIG["speech_lang"]
        self.rate = rate or CONFIG["speech_rate"]
        self._process: Optional[subprocess.Popen] = None

    def speak(self, text: str):
        # A new utterance replaces whatever is still being spoken
        if self._process and self._process.poll() is None:
            self._process.terminate()
        try:
            self._process = subprocess.Popen(
                ["espeak", "-s", str(self.rate), "-v", self._voice(), text],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            self._speak_pyttsx3(text)

    def _voice(self) -> str:
        # espeak voices are bare language codes ("en", "hi", "mr")
        return self.lang.split("-")[0].lower()

    def _speak_pyttsx3(self, text: str):
        try:
            import pyttsx3
        except ImportError:
            raise AnnouncementUnsupported("neither espeak nor pyttsx3 is installed")

        def run():
            try:
                engine = pyttsx3.init()
                engine.setProperty("rate", self.rate)
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                print(f"Audio error: {e}")

        threading.Thread(target=run, daemon=True).start()


class Announcer:
    """Speaks navigation events when the user has speech turned on.

    announce() never raises: missing speech support degrades to a log line.
    """

    def __init__(self, output: Optional[SpeechOutput] = None,
                 enabled: Callable[[], bool] = lambda: False,
                 logger: Optional[Logger] = None,
                 callback: Optional[Callable[[str], None]] = None):
        self.output = output or NullSpeechOutput()
        self.enabled = enabled
        self.logger = logger or Logger(echo=False)
        self.callback = callback
        self.unsupported = False

    def announce(self, text: str):
        if not text:
            return
        self.logger.log(f"AUDIO: {text}")
        if self.callback:
            self.callback(text)
        if not self.enabled():
            return
        try:
            self.output.speak(text)
        except AnnouncementUnsupported:
            if not self.unsupported:
                self.logger.log("Speech unavailable, announcements are text only")
            self.unsupported = True
        except Exception as e:
            self.logger.error("Speech failed", e)


class SpeechInput:
    """Speech-to-text capability delivering transcripts on the event loop"""

    def listen(self, on_transcript: Callable[[str], None],
               on_error: Callable[[Exception], None]):
        raise NotImplementedError

    def stop(self):
        pass


class NullSpeechInput(SpeechInput):
    """For platforms without speech recognition"""

    def listen(self, on_transcript, on_error):
        on_error(SpeechInputUnsupported("Voice input is not supported on this platform."))


class ConsoleSpeechInput(SpeechInput):
    """Typed commands stand in for recognised speech.

    Lines are read on a daemon thread and handed back to the event loop.
    """

    def __init__(self, prompt: str = "> ", reader: Callable[[str], str] = input):
        self.prompt = prompt
        self.reader = reader
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()

    def listen(self, on_transcript, on_error):
        if self._thread and self._thread.is_alive():
            return
        loop = asyncio.get_running_loop()
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._read_lines, args=(loop, on_transcript, on_error), daemon=True
        )
        self._thread.start()

    def _read_lines(self, loop, on_transcript, on_error):
        while not self._stopped.is_set():
            try:
                line = self.reader(self.prompt)
            except EOFError:
                return
            except Exception as e:
                self._deliver(loop, on_error, e)
                return
            if line.strip():
                self._deliver(loop, on_transcript, line.strip())

    def _deliver(self, loop, callback, value):
        if self._stopped.is_set():
            return
        try:
            loop.call_soon_threadsafe(callback, value)
        except RuntimeError:
            # Event loop already closed
            self._stopped.set()

    def stop(self):
        self._stopped.set()
        self._thread = None
