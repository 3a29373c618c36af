"""Desktop journal client entrypoint."""

from __future__ import annotations

import logging
import sys

from capabilities import HostCapabilities, HostEnvironment
from config import JsonConfigStore
from entry_client import HttpEntryClient, describe_auth_error
from errors import EntryServiceError
from hotkey import GlobalHotkeyAdapter
from journal_page import JournalPage
from journal_window import JournalWindow
from recognizer import DashscopeSpeechEngine, dashscope
from recorder import probe_microphone
from speech_session import SpeechSessionController
from voice_input import VoiceInputControl

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication, QInputDialog, QLineEdit, QMessageBox
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

SIGN_IN = "Sign in"
CREATE_ACCOUNT = "Create account"


class UIBridge(QObject):
    """Runs callables on the Qt thread; emitted from engine threads."""

    call_signal = Signal(object)

    def __init__(self) -> None:
        super().__init__()
        self.call_signal.connect(lambda fn: fn())

    def dispatch(self, fn) -> None:  # noqa: ANN001
        self.call_signal.emit(fn)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.ui = UIBridge()

        server_url = self.config_store.get_server_url()
        api_key = self.config_store.get_api_key()
        engine_factory = None
        if dashscope is not None:
            engine_factory = lambda: DashscopeSpeechEngine(api_key=api_key)  # noqa: E731
        host = HostEnvironment.from_url(server_url, speech_recognition=engine_factory)
        capabilities = HostCapabilities(host, self.config_store.get_local_dev_hosts())

        self.client = HttpEntryClient(server_url, token=self.config_store.get_token())
        self.page = JournalPage(self.client)
        self.controller = SpeechSessionController(
            host.engine_factory(),
            capabilities,
            language=self.config_store.get_language(),
        )
        self.control = VoiceInputControl(
            self.controller,
            capabilities,
            microphone_probe=probe_microphone,
            on_transcript=self._on_transcript,
            on_change=self._refresh,
            on_error=self.page.report_voice_error,
            dispatch=self.ui.dispatch,
        )
        self.window = JournalWindow(self.page, self.control)
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

    # ------------------------------------------------------------------
    # Callbacks (already on the Qt thread via UIBridge)
    # ------------------------------------------------------------------

    def _on_transcript(self, text: str) -> None:
        self.window.append_transcript(text)

    def _refresh(self) -> None:
        self.window.refresh()

    def _on_hotkey_press(self, device) -> None:  # noqa: ANN001
        self.ui.dispatch(lambda: self.control.press(device))

    def _on_hotkey_release(self, device) -> None:  # noqa: ANN001
        self.ui.dispatch(lambda: self.control.release(device))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def _ensure_login(self) -> bool:
        if self.client.token:
            try:
                self.client.list_entries()
                return True
            except EntryServiceError as exc:
                if exc.status_code != 401:
                    QMessageBox.warning(None, "Journal", f"Server unavailable: {exc.message}")
                    return False

        choice, ok = QInputDialog.getItem(
            None, "Journal", "Account", [SIGN_IN, CREATE_ACCOUNT], 0, False
        )
        if not ok:
            return False
        email, ok = QInputDialog.getText(None, choice, "Email")
        if not ok or not email:
            return False
        password, ok = QInputDialog.getText(None, choice, "Password", QLineEdit.Password)
        if not ok:
            return False
        try:
            token = self.client.sign_in(email, password, create_account=choice == CREATE_ACCOUNT)
        except EntryServiceError as exc:
            QMessageBox.warning(None, "Journal", describe_auth_error(exc))
            return False
        self.config_store.set_token(token)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        if not self._ensure_login():
            return 1
        self.control.mount()
        self.page.refresh()
        self.window.refresh()
        self.window.show()
        try:
            self.hotkey.start(
                on_press=self._on_hotkey_press,
                on_release=self._on_hotkey_release,
            )
        except Exception as exc:
            logger.warning("Push-to-talk key disabled: %s", exc)
        self.app.aboutToQuit.connect(self.quit)
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.control.unmount()
        self.controller.stop()
        self.client.close()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
