import asyncio
import logging

import pytest

from modelql.core.callbacks import CallbackRegistry, run_callbacks, run_callbacks_async
from modelql.core.fields import create_model, field


@pytest.mark.asyncio
async def test_run_callbacks_threads_the_iterator():
    async def add_one(value, props):
        return value + [props['n']]

    def keep(value, props):
        return None

    result = await run_callbacks('test.before', [add_one, keep, add_one], [], ({'n': 1},))
    assert result == [1, 1]


@pytest.mark.asyncio
async def test_run_callbacks_accepts_single_callable_and_none():
    assert await run_callbacks('x', lambda v: v * 2, 2) == 4
    assert await run_callbacks('x', None, 'same') == 'same'


def test_registry_is_ordered_and_additive():
    def a(v):
        return v

    def b(v):
        return v

    registry = CallbackRegistry({'Foo.create.before': [a]})
    registry.add('Foo.create.before', b, a)
    assert registry.get('Foo.create.before') == (a, b)
    assert 'Foo.create.before' in registry
    assert 'Foo.update.before' not in registry
    assert registry.get('missing') == ()
    assert registry.hook_names() == ['Foo.create.before']


def test_registry_rejects_non_callables():
    with pytest.raises(TypeError):
        CallbackRegistry().add('Foo.create.before', 'nope')


def test_create_model_registers_namespaced_hooks():
    def check(errors, props):
        return errors

    Foo = create_model(
        'Foo',
        {'a': field(str, can_read=True)},
        type_name='FooType',
        callbacks={'create': {'validate': check}, 'delete': {'after': [check]}},
    )
    assert Foo.callbacks.hook_names() == ['FooType.create.validate', 'FooType.delete.after']


@pytest.mark.asyncio
async def test_run_callbacks_async_schedules_and_logs_failures(caplog):
    caplog.set_level(logging.ERROR, logger='modelql')
    seen = []

    async def ok(props):
        seen.append(props)

    def fails(props):
        raise ValueError('nope')

    tasks = run_callbacks_async('Foo.create.async', [ok, fails], ({'id': 1},))
    assert len(tasks) == 2
    await asyncio.gather(*tasks, return_exceptions=True)
    await asyncio.sleep(0)
    assert seen == [{'id': 1}]
    assert any('Foo.create.async' in r.getMessage() for r in caplog.records)
