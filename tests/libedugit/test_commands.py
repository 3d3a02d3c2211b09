import re

from libedugit import commands
from libedugit.ref import HashRef
from libedugit.repository import Repository
from libedugit.sequencer import OperationKind
from pytest import fixture

INITIAL = 'initial content\n'
BRANCH_EDIT = 'initial content\nBranch line\n'
MAIN_EDIT = 'initial content\nBase line\n'


def _write(repo: Repository, name: str, content: str) -> None:
    (repo.working_dir / name).write_text(content)


def _read(repo: Repository, name: str) -> str:
    return (repo.working_dir / name).read_text()


@fixture
def diverged(temp_repo: Repository) -> dict[str, HashRef]:
    """`feature` appends "Branch line" and `main` appends "Base line" to the same file. HEAD is on main."""
    _write(temp_repo, 'file.txt', INITIAL)
    base = temp_repo.commit_working_dir('Author', 'Initial')

    temp_repo.add_branch('feature', base)
    temp_repo.checkout('feature')
    _write(temp_repo, 'file.txt', BRANCH_EDIT)
    feature = temp_repo.commit_working_dir('Author', 'Branch edit')

    temp_repo.checkout('main')
    _write(temp_repo, 'file.txt', MAIN_EDIT)
    main = temp_repo.commit_working_dir('Author', 'Main edit')

    return {'base': base, 'feature': feature, 'main': main}


# commit

def test_commit(temp_repo: Repository) -> None:
    _write(temp_repo, 'file.txt', INITIAL)
    temp_repo.stage('file.txt')

    [line] = commands.commit(temp_repo, 'Add file')

    assert line == f'[main {temp_repo.head_commit()[:7]}] Add file'


def test_commit_requires_message(temp_repo: Repository) -> None:
    assert commands.commit(temp_repo) == ['fatal: commit message required (use -m)']


# merge

def test_merge_conflict_markers(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    output = commands.merge(temp_repo, 'feature')

    assert output == ['Automatic merge failed; fix conflicts and commit the result.',
                      'CONFLICT (content): file.txt']
    assert _read(temp_repo, 'file.txt') == ('initial content\n'
                                            '<<<<<<< HEAD\nBase line\n=======\nBranch line\n>>>>>>> feature\n')
    assert temp_repo.sequencer().is_in_merge()
    assert temp_repo.head_commit() == diverged['main']


def test_merge_conflict_from_the_branch_side(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')

    commands.merge(temp_repo, 'main')

    text = _read(temp_repo, 'file.txt')
    assert text.index('<<<<<<< HEAD') < text.index('Branch line') < text.index('=======')
    assert text.index('=======') < text.index('Base line') < text.index('>>>>>>> main')
    assert temp_repo.sequencer().is_in_merge()


def test_merge_commit_after_resolution(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.merge(temp_repo, 'feature')

    assert commands.commit(temp_repo) == ['fatal: Fix conflicts and stage the result first.']
    assert temp_repo.sequencer().is_in_merge()

    _write(temp_repo, 'file.txt', 'initial content\nBase line\nBranch line\n')
    temp_repo.stage('file.txt')
    [line] = commands.commit(temp_repo)

    assert line == f"[main {temp_repo.head_commit()[:7]}] Merge branch 'feature' into main"
    assert temp_repo.read_commit(temp_repo.head_commit()).parents == [diverged['main'], diverged['feature']]
    assert not temp_repo.sequencer().is_in_merge()


def test_merge_continue(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.merge(temp_repo, 'feature')
    _write(temp_repo, 'file.txt', 'resolved\n')
    temp_repo.stage('file.txt')

    [line] = commands.merge_continue(temp_repo)

    assert line.endswith("Merge branch 'feature' into main")
    assert not temp_repo.sequencer().is_in_merge()


def test_merge_abort_restores_head(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.merge(temp_repo, 'feature')

    assert commands.merge_abort(temp_repo) == ['Merge aborted.']
    assert temp_repo.head_commit() == diverged['main']
    assert _read(temp_repo, 'file.txt') == MAIN_EDIT
    assert not temp_repo.sequencer().is_in_merge()
    assert not temp_repo.has_changes()


def test_merge_abort_without_merge(temp_repo: Repository) -> None:
    assert commands.merge_abort(temp_repo) == ['fatal: There is no merge to abort (MERGE_HEAD missing).']


def test_merge_clean(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'other.txt', 'other\n')
    feature = temp_repo.commit_working_dir('Author', 'Add other')
    temp_repo.checkout('main')
    temp_repo.reset_hard(diverged['base'])
    _write(temp_repo, 'main.txt', 'main\n')
    main = temp_repo.commit_working_dir('Author', 'Add main')

    assert commands.merge(temp_repo, 'feature') == ['Merged feature into main']

    merge_commit = temp_repo.read_commit(temp_repo.head_commit())
    assert merge_commit.parents == [main, feature]
    assert merge_commit.message == "Merge branch 'feature' into main"
    assert _read(temp_repo, 'file.txt') == BRANCH_EDIT
    assert _read(temp_repo, 'other.txt') == 'other\n'
    assert _read(temp_repo, 'main.txt') == 'main\n'
    assert not temp_repo.has_changes()


def test_merge_fast_forward(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.reset_hard(diverged['base'])

    output = commands.merge(temp_repo, 'feature')

    assert output == [f'Updating {diverged["base"][:7]}..{diverged["feature"][:7]}', 'Fast-forward']
    assert temp_repo.head_commit() == diverged['feature']
    assert _read(temp_repo, 'file.txt') == BRANCH_EDIT


def test_merge_already_up_to_date(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.merge(temp_repo, 'HEAD~1') == ['Already up to date.']


def test_merge_unknown_name(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.merge(temp_repo, 'nope') == ['fatal: merge: nope - not something we can merge']


def test_merge_refused_during_cherry_pick(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.cherry_pick(temp_repo, 'feature')

    assert commands.merge(temp_repo, 'feature') == ['fatal: A cherry-pick is already in progress.']
    assert temp_repo.sequencer().active() == OperationKind.CHERRY_PICK


# cherry-pick

def test_cherry_pick_conflict_and_abort(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    output = commands.cherry_pick(temp_repo, 'feature')

    assert output == ['Automatic cherry-pick failed; fix conflicts and run "git cherry-pick --continue".',
                      'CONFLICT (content): file.txt']
    assert temp_repo.sequencer().is_in_cherry_pick()
    assert '>>>>>>> ' + diverged['feature'][:7] in _read(temp_repo, 'file.txt')

    assert commands.cherry_pick_abort(temp_repo) == ['Cherry-pick aborted.']
    assert not temp_repo.sequencer().is_in_cherry_pick()
    assert temp_repo.head_commit() == diverged['main']
    assert _read(temp_repo, 'file.txt') == MAIN_EDIT


def test_cherry_pick_continue(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.cherry_pick(temp_repo, 'feature')

    assert commands.cherry_pick_continue(temp_repo) == ['fatal: Fix conflicts and stage the result first.']

    _write(temp_repo, 'file.txt', 'initial content\nBase line\nBranch line\n')
    temp_repo.stage('file.txt')
    [line] = commands.cherry_pick_continue(temp_repo)

    head = temp_repo.head_commit()
    assert line == f'[main {head[:7]}] Branch edit'
    assert temp_repo.read_commit(head).parents == [diverged['main']]
    assert not temp_repo.sequencer().is_in_cherry_pick()


def test_cherry_pick_clean(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'new.txt', 'new\n')
    picked = temp_repo.commit_working_dir('Author', 'Add new file\n\nWith a body.')
    temp_repo.checkout('main')

    [line] = commands.cherry_pick(temp_repo, picked[:7])

    head = temp_repo.head_commit()
    assert line == f'[main {head[:7]}] Add new file'
    assert temp_repo.read_commit(head).parents == [diverged['main']]
    assert _read(temp_repo, 'new.txt') == 'new\n'
    assert _read(temp_repo, 'file.txt') == MAIN_EDIT


def test_cherry_pick_queue_stops_and_continues(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'c.txt', 'c\n')
    temp_repo.commit_working_dir('Author', 'Add c')
    temp_repo.checkout('main')

    output = commands.cherry_pick(temp_repo, 'feature~1', 'feature')

    assert output[0] == 'Automatic cherry-pick failed; fix conflicts and run "git cherry-pick --continue".'
    state = temp_repo.sequencer().load(OperationKind.CHERRY_PICK)
    assert state.cherry_pick_head == diverged['feature']
    assert state.todo == [temp_repo.resolve_ref('feature')]

    _write(temp_repo, 'file.txt', 'resolved\n')
    temp_repo.stage('file.txt')
    output = commands.cherry_pick_continue(temp_repo)

    assert [re.sub(r'[0-9a-f]{7}', 'SHA', line) for line in output] == ['[main SHA] Branch edit', '[main SHA] Add c']
    assert _read(temp_repo, 'c.txt') == 'c\n'
    assert not temp_repo.sequencer().is_in_cherry_pick()


def test_cherry_pick_nothing_to_apply(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'same.txt', 'same\n')
    picked = temp_repo.commit_working_dir('Author', 'Same change on feature')
    temp_repo.checkout('main')
    _write(temp_repo, 'same.txt', 'same\n')
    main = temp_repo.commit_working_dir('Author', 'Same change on main')

    assert commands.cherry_pick(temp_repo, picked) == ['Nothing to apply.']
    assert temp_repo.head_commit() == main


def test_cherry_pick_bad_revision(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.cherry_pick(temp_repo, 'nope') == ["fatal: bad revision 'nope'"]
    assert commands.cherry_pick(temp_repo, 'HEAD~5') == ["fatal: bad revision 'HEAD~5'"]


def test_cherry_pick_requires_clean_tree(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'dirty\n')

    assert commands.cherry_pick(temp_repo, 'feature') == ['fatal: cherry-pick requires a clean working tree.']


def test_cherry_pick_continue_without_pick(temp_repo: Repository) -> None:
    assert commands.cherry_pick_continue(temp_repo) == ['fatal: There is no cherry-pick in progress.']
    assert commands.cherry_pick_abort(temp_repo) == ['fatal: There is no cherry-pick in progress.']


def test_cherry_pick_refused_during_merge(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    commands.merge(temp_repo, 'feature')

    output = commands.cherry_pick(temp_repo, 'feature')

    assert output == ['fatal: You have not concluded your merge (MERGE_HEAD exists).']
    assert not temp_repo.sequencer().is_in_cherry_pick()


# rebase

def test_rebase_conflict_then_continue(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')

    output = commands.rebase(temp_repo, 'main')

    assert output == ['Rebasing feature onto main',
                      'Automatic rebase failed; fix conflicts and run "git rebase --continue".',
                      'CONFLICT (content): file.txt']
    assert temp_repo.sequencer().is_in_rebase()
    assert temp_repo.head_commit() == diverged['main']

    assert commands.rebase_continue(temp_repo) == ['fatal: Fix conflicts and stage the result first.']
    assert temp_repo.sequencer().is_in_rebase()

    _write(temp_repo, 'file.txt', 'initial content\nBase line\nBranch line\n')
    temp_repo.stage('file.txt')
    output = commands.rebase_continue(temp_repo)

    head = temp_repo.head_commit()
    assert output == [f'[feature {head[:7]}] Branch edit', 'Successfully rebased and updated feature.']
    assert temp_repo.read_commit(head).parents == [diverged['main']]
    assert temp_repo.current_branch() == 'feature'
    assert not temp_repo.sequencer().is_in_rebase()


def test_rebase_abort(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    commands.rebase(temp_repo, 'main')

    assert commands.rebase_abort(temp_repo) == ['Rebase aborted.']
    assert temp_repo.head_commit() == diverged['feature']
    assert temp_repo.current_branch() == 'feature'
    assert _read(temp_repo, 'file.txt') == BRANCH_EDIT
    assert not temp_repo.sequencer().is_in_rebase()


def test_rebase_clean(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    temp_repo.reset_hard(diverged['base'])
    _write(temp_repo, 'a.txt', 'a\n')
    temp_repo.commit_working_dir('Author', 'Add a')
    _write(temp_repo, 'b.txt', 'b\n')
    temp_repo.commit_working_dir('Author', 'Add b')

    output = commands.rebase(temp_repo, 'main')

    assert [re.sub(r'[0-9a-f]{7}', 'SHA', line) for line in output] == [
        'Rebasing feature onto main',
        '[feature SHA] Add a',
        '[feature SHA] Add b',
        'Successfully rebased and updated feature.',
    ]
    assert [entry.commit.message for entry in temp_repo.log()] == ['Add b', 'Add a', 'Main edit', 'Initial']
    assert _read(temp_repo, 'file.txt') == MAIN_EDIT
    assert not temp_repo.sequencer().is_in_rebase()


def test_rebase_up_to_date(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.rebase(temp_repo, 'HEAD~1') == ['Current branch is up to date.']
    assert not temp_repo.sequencer().is_in_rebase()


def test_rebase_preconditions(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.rebase(temp_repo, 'nope') == ["fatal: invalid upstream 'nope'"]
    assert commands.rebase_continue(temp_repo) == ['fatal: No rebase in progress.']
    assert commands.rebase_abort(temp_repo) == ['fatal: No rebase in progress.']

    _write(temp_repo, 'file.txt', 'dirty\n')
    assert commands.rebase(temp_repo, 'feature') == ['fatal: rebase requires a clean working tree.']

    temp_repo.reset_hard(diverged['main'])
    temp_repo.checkout(diverged['main'])
    assert commands.rebase(temp_repo, 'feature') == ['fatal: rebase requires a current branch']


# stash

def test_stash_push_and_pop(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'work in progress\n')
    _write(temp_repo, 'untracked.txt', 'untracked\n')

    assert commands.stash(temp_repo, 'push', '-m', 'wip') == ['Saved working directory and index state On main: wip']
    assert _read(temp_repo, 'file.txt') == MAIN_EDIT
    assert not (temp_repo.working_dir / 'untracked.txt').exists()
    assert commands.stash(temp_repo, 'list') == ['stash@{0}: On main: wip']

    [entry] = temp_repo.stash_store().load()
    assert temp_repo.read_commit(entry.commit).parents == [diverged['main'], entry.index]

    assert commands.stash(temp_repo, 'pop') == [f'Dropped refs/stash@{{0}} ({entry.commit})']
    assert _read(temp_repo, 'file.txt') == 'work in progress\n'
    assert _read(temp_repo, 'untracked.txt') == 'untracked\n'
    assert commands.stash(temp_repo, 'list') == []


def test_stash_default_message(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'work in progress\n')

    [line] = commands.stash(temp_repo)

    assert line == f'Saved working directory and index state WIP on main: {diverged["main"][:7]} Main edit'


def test_stash_without_changes(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.stash(temp_repo) == ['No local changes to save']


def test_stash_pop_conflict_keeps_entry(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'stashed line\n')
    commands.stash(temp_repo, '-m', 'conflicting')
    _write(temp_repo, 'file.txt', 'committed line\n')
    temp_repo.commit_working_dir('Author', 'Change file')

    output = commands.stash(temp_repo, 'pop')

    assert output == ['CONFLICT (content): file.txt', 'The stash entry is kept in case you need it again.']
    assert _read(temp_repo, 'file.txt') == ('<<<<<<< Updated upstream\ncommitted line\n'
                                            '=======\nstashed line\n>>>>>>> Stashed changes\n')
    assert len(temp_repo.stash_store().load()) == 1


def test_stash_apply_keeps_entry(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'first\n')
    commands.stash(temp_repo, '-m', 'first')
    _write(temp_repo, 'file.txt', 'second\n')
    commands.stash(temp_repo, '-m', 'second')

    assert commands.stash(temp_repo, 'list') == ['stash@{0}: On main: second', 'stash@{1}: On main: first']
    assert commands.stash(temp_repo, 'apply', 'stash@{1}') == []
    assert _read(temp_repo, 'file.txt') == 'first\n'
    assert len(temp_repo.stash_store().load()) == 2


def test_stash_drop_and_clear(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'file.txt', 'first\n')
    commands.stash(temp_repo, '-m', 'first')
    _write(temp_repo, 'file.txt', 'second\n')
    commands.stash(temp_repo, '-m', 'second')
    first = temp_repo.stash_store().load()[1]

    assert commands.stash(temp_repo, 'drop', 'stash@{1}') == [f'Dropped refs/stash@{{1}} ({first.commit})']
    assert commands.stash(temp_repo, 'list') == ['stash@{0}: On main: second']

    assert commands.stash(temp_repo, 'clear') == []
    assert commands.stash(temp_repo, 'list') == []


def test_stash_errors(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    assert commands.stash(temp_repo, 'pop') == ['fatal: No stash entries found.']

    _write(temp_repo, 'file.txt', 'first\n')
    commands.stash(temp_repo)
    assert commands.stash(temp_repo, 'apply', 'stash@{3}') == ['fatal: stash@{3} is not a valid reference']
    assert commands.stash(temp_repo, 'frobnicate') == ['fatal: unknown stash command: frobnicate']


# clean tree preconditions

PRECIOUS = 'precious untracked work\n'


@fixture
def untracked_notes(temp_repo: Repository, diverged: dict[str, HashRef]) -> HashRef:
    """`feature` gains a commit adding notes.txt while main has an untracked notes.txt of its own."""
    temp_repo.checkout('feature')
    _write(temp_repo, 'notes.txt', 'from feature\n')
    notes = temp_repo.commit_working_dir('Author', 'Add notes')
    temp_repo.checkout('main')
    _write(temp_repo, 'notes.txt', PRECIOUS)
    return notes


def test_untracked_file_blocks_cherry_pick(temp_repo: Repository, diverged: dict[str, HashRef],
                                           untracked_notes: HashRef) -> None:
    output = commands.cherry_pick(temp_repo, untracked_notes)

    assert output == ['fatal: cherry-pick requires a clean working tree.']
    assert _read(temp_repo, 'notes.txt') == PRECIOUS
    assert temp_repo.head_commit() == diverged['main']


def test_untracked_file_blocks_merge(temp_repo: Repository, diverged: dict[str, HashRef],
                                     untracked_notes: HashRef) -> None:
    assert commands.merge(temp_repo, 'feature') == ['fatal: merge requires a clean working tree.']
    assert _read(temp_repo, 'notes.txt') == PRECIOUS
    assert not temp_repo.sequencer().is_in_merge()


def test_untracked_file_blocks_rebase(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'notes.txt', PRECIOUS)

    assert commands.rebase(temp_repo, 'main') == ['fatal: rebase requires a clean working tree.']
    assert _read(temp_repo, 'notes.txt') == PRECIOUS
    assert temp_repo.head_commit() == diverged['feature']


def test_untracked_file_blocks_stash_pop(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    _write(temp_repo, 'notes.txt', 'stashed notes\n')
    commands.stash(temp_repo)
    _write(temp_repo, 'notes.txt', PRECIOUS)

    assert commands.stash(temp_repo, 'pop') == ['fatal: stash apply requires a clean working tree.']
    assert _read(temp_repo, 'notes.txt') == PRECIOUS
    assert len(temp_repo.stash_store().load()) == 1


# binary conflicts

def test_cherry_pick_binary_conflict_needs_staging(temp_repo: Repository) -> None:
    image = temp_repo.working_dir / 'img.bin'
    image.write_bytes(b'\x89PNG\xff\x00base')
    base = temp_repo.commit_working_dir('Author', 'Add image')
    temp_repo.add_branch('feature', base)
    temp_repo.checkout('feature')
    image.write_bytes(b'\x89PNG\xff\x00theirs')
    temp_repo.commit_working_dir('Author', 'Theirs')
    temp_repo.checkout('main')
    image.write_bytes(b'\x89PNG\xff\x00ours')
    ours = temp_repo.commit_working_dir('Author', 'Ours')

    assert commands.cherry_pick(temp_repo, 'feature')[-1] == 'CONFLICT (content): img.bin'
    assert image.read_bytes() == b'\x89PNG\xff\x00ours'

    assert commands.cherry_pick_continue(temp_repo) == ['fatal: Fix conflicts and stage the result first.']
    assert temp_repo.sequencer().is_in_cherry_pick()
    assert temp_repo.head_commit() == ours

    image.write_bytes(b'\x89PNG\xff\x00theirs')
    temp_repo.stage('img.bin')
    [line] = commands.cherry_pick_continue(temp_repo)

    assert line == f'[main {temp_repo.head_commit()[:7]}] Theirs'
    assert not temp_repo.sequencer().is_in_cherry_pick()


# commit during a sequence

def test_commit_refused_during_rebase(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    commands.rebase(temp_repo, 'main')
    _write(temp_repo, 'file.txt', 'resolved\n')
    temp_repo.stage('file.txt')

    assert commands.commit(temp_repo, 'Manual commit') == [
        'fatal: A rebase is in progress; run "git rebase --continue" to commit the resolution.']
    assert temp_repo.head_commit() == diverged['main']

    assert commands.rebase_continue(temp_repo)[-1] == 'Successfully rebased and updated feature.'
    assert [entry.commit.message for entry in temp_repo.log()] == ['Branch edit', 'Main edit', 'Initial']


def test_commit_refused_while_picks_are_queued(temp_repo: Repository, diverged: dict[str, HashRef]) -> None:
    temp_repo.checkout('feature')
    _write(temp_repo, 'c.txt', 'c\n')
    temp_repo.commit_working_dir('Author', 'Add c')
    temp_repo.checkout('main')
    commands.cherry_pick(temp_repo, 'feature~1', 'feature')
    _write(temp_repo, 'file.txt', 'resolved\n')
    temp_repo.stage('file.txt')

    assert commands.commit(temp_repo, 'Manual commit') == [
        'fatal: A cherry-pick is in progress; run "git cherry-pick --continue" to commit the resolution.']
    assert temp_repo.head_commit() == diverged['main']
    assert temp_repo.sequencer().is_in_cherry_pick()
