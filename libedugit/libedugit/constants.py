"""Repository layout and behaviour constants."""

DEFAULT_REPO_DIR = '.edugit'
DEFAULT_BRANCH = 'main'
DEFAULT_AUTHOR = 'Learner <learner@example.com>'

OBJECTS_SUBDIR = 'objects'
REFS_DIR = 'refs'
HEADS_DIR = 'heads'
HEAD_FILE = 'HEAD'
HEAD_REF = 'HEAD'
INDEX_FILE = 'index'

SEQUENCER_DIR = 'sequencer'
MERGE_STATE_FILE = 'MERGE_STATE.json'
CHERRY_PICK_STATE_FILE = 'CHERRY_PICK_STATE.json'
REBASE_STATE_FILE = 'REBASE_STATE.json'
STASH_FILE = 'STASH.json'

HASH_LENGTH = 40
HASH_CHARSET = '0123456789abcdef'
MIN_SHORT_HASH_LENGTH = 4
SHORT_HASH_LENGTH = 7

HEAD_LABEL = 'HEAD'
STASH_HEAD_LABEL = 'Updated upstream'
STASH_TARGET_LABEL = 'Stashed changes'
