import os
import tempfile


class TempFileHandle:
    def __init__(self, data: bytes = None):
        with tempfile.NamedTemporaryFile("xb", delete=False) as h:
            self._filename = h.name
            if data is not None:
                h.write(data)

    @property
    def path(self):
        return self._filename

    def open(self, mode: str):
        return open(self._filename, mode)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            os.unlink(self._filename)
        except Exception as e:
            print(e)
