import logging
import os

from flask import current_app

logger = logging.getLogger(__name__)


class LocalFileStore:
    """Blob storage in a directory on disk, addressed by slash-separated keys.

    Files are served back by the ``main.uploaded_file`` route, so the public
    URL of a key is ``base_url`` + ``/`` + key.
    """

    def __init__(self, root, base_url='/uploads'):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip('/')
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key):
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValueError(f'Storage key escapes the upload folder: {key}')
        return path

    def upload(self, key, stream):
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as fh:
            fh.write(stream.read())
        logger.info('Stored %s', key)
        return key

    def url_for(self, key):
        return f'{self.base_url}/{key}'

    def key_from_url(self, url):
        prefix = self.base_url + '/'
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):]

    def exists(self, key):
        return os.path.isfile(self._path(key))

    def delete(self, key):
        os.remove(self._path(key))
        logger.info('Deleted %s', key)


def get_file_store():
    return current_app.extensions['file_store']
