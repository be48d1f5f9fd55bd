from turnroom.models import Prompt
from turnroom.prompt_catalog import CATALOG


def test_seed_prompts_is_idempotent(flask_app):
    runner = flask_app.test_cli_runner()
    total = sum(len(entries) for entries in CATALOG.values())

    result = runner.invoke(args=['seed-prompts'])
    assert f'Seeded {total} new prompts.' in result.output
    assert Prompt.query.count() == total

    result = runner.invoke(args=['seed-prompts'])
    assert 'Seeded 0 new prompts.' in result.output


def test_catalog_covers_every_mode():
    from turnroom.services.turns.constants import PROMPT_MODES
    assert set(CATALOG) == set(PROMPT_MODES)


def test_stall_sweep_command(flask_app, coordinator):
    result = flask_app.test_cli_runner().invoke(args=['stall-sweep'])
    assert result.exit_code == 0
    assert 'Stall sweep done: 0 turn(s) skipped.' in result.output
