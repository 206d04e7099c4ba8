import pytest

from modelql.core.fields import create_model, field
from modelql.permissions import (
    can_create_field,
    can_read_field,
    can_update_field,
    restrict_viewable_fields,
)
from tests.models import ADMIN_USER, CURRENT_USER, make_foo, make_post


def test_restrict_drops_unreadable_and_unknown_fields():
    doc = {'_id': '1', 'foo2': 'bar', 'privateAuto': 'x', 'unknown': 1}
    assert restrict_viewable_fields(CURRENT_USER, make_foo(), doc) == {'_id': '1', 'foo2': 'bar'}
    assert restrict_viewable_fields(ADMIN_USER, make_foo(), doc) == {'_id': '1', 'foo2': 'bar', 'privateAuto': 'x'}


def test_restrict_lists_and_none():
    Foo = make_foo()
    docs = [{'foo2': 'a', 'privateAuto': 'x'}, {'foo2': 'b'}]
    assert restrict_viewable_fields(None, Foo, docs) == [{'foo2': 'a'}, {'foo2': 'b'}]
    assert restrict_viewable_fields(None, Foo, None) is None
    assert restrict_viewable_fields(None, Foo, []) == []


def test_restrict_does_not_mutate_document():
    doc = {'foo2': 'a', 'privateAuto': 'x'}
    restrict_viewable_fields(None, make_foo(), doc)
    assert doc == {'foo2': 'a', 'privateAuto': 'x'}


def test_restrict_owner_fields_against_each_document():
    User = create_model('User', {
        '_id': field(str, can_read=True),
        'email': field(str, can_read=['owners', 'admins']),
        'userId': field(str, can_read=True),
    })
    docs = [
        {'_id': 'a', 'email': 'a@example.com', 'userId': '42'},
        {'_id': 'b', 'email': 'b@example.com', 'userId': '7'},
    ]
    out = restrict_viewable_fields(CURRENT_USER, User, docs)
    assert out[0]['email'] == 'a@example.com'
    assert 'email' not in out[1]


def test_restrict_nested_objects():
    Post = make_post()
    Nested = create_model('Nested', {
        'address': field(
            {'city': field(str, can_read=True), 'code': field(str, can_read=['admins'])},
            can_read=True,
        ),
        'items': field({'label': field(str, can_read=True), 'cost': field(int, can_read=['admins'])}, can_read=True),
    })
    doc = {'address': {'city': 'Paris', 'code': '75'}, 'items': {'label': 'x', 'cost': 3}}
    assert restrict_viewable_fields(None, Nested, doc) == {'address': {'city': 'Paris'}, 'items': {'label': 'x'}}
    assert restrict_viewable_fields(None, Post, {'address': {'city': 'Paris', 'zip': 75000}}) == {
        'address': {'city': 'Paris', 'zip': 75000},
    }


def test_restrict_array_of_objects():
    from modelql.core.fields import array

    Order = create_model('Order', {
        'lines': field(array({'sku': field(str, can_read=True), 'cost': field(int, can_read=['admins'])}), can_read=True),
    })
    doc = {'lines': [{'sku': 'a', 'cost': 1}, {'sku': 'b', 'cost': 2}]}
    assert restrict_viewable_fields(None, Order, doc) == {'lines': [{'sku': 'a'}, {'sku': 'b'}]}
    assert restrict_viewable_fields(ADMIN_USER, Order, doc) == doc


def test_field_predicates_see_the_document():
    meta = field(str, can_read=lambda user, document: bool(document and document.get('public')))
    bound = create_model('P', {'x': meta}).schema['x']
    assert can_read_field(None, bound, {'public': True})
    assert not can_read_field(None, bound, {'public': False})


def test_async_field_predicate_is_rejected_at_declaration():
    async def check(user):
        return True

    for flag in ('can_read', 'can_create', 'can_update'):
        with pytest.raises(TypeError):
            field(str, **{flag: check})


def test_field_predicate_returning_awaitable_is_rejected():
    async def check():
        return True

    bound = create_model('P', {'x': field(str, can_read=lambda user: check())}).schema['x']
    with pytest.raises(TypeError):
        can_read_field(None, bound, {})


def test_computed_fields_are_never_writable():
    from modelql.core.fields import resolve_as

    bound = create_model('P', {
        'x': field(str, can_read=True, can_create=True, can_update=True, resolve_as=resolve_as('String', resolver=lambda root, info: 'x')),
    }).schema['x']
    assert can_read_field(None, bound)
    assert not can_create_field(CURRENT_USER, bound)
    assert not can_update_field(CURRENT_USER, bound)
