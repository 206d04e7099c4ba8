from modelql.core.naming import camel_case, nested_type_name, pascal_case, pluralize


def test_camel_case():
    assert camel_case('SingleFoo') == 'singleFoo'
    assert camel_case('Posts') == 'posts'
    assert camel_case('user_profile') == 'userProfile'
    assert camel_case('alreadyCamel') == 'alreadyCamel'
    assert camel_case('') == ''


def test_pascal_case():
    assert pascal_case('address') == 'Address'
    assert pascal_case('post_comments') == 'PostComments'
    assert pascal_case('postComments') == 'PostComments'


def test_pluralize():
    assert pluralize('Post') == 'Posts'
    assert pluralize('Category') == 'Categories'
    assert pluralize('Day') == 'Days'
    assert pluralize('Address') == 'Addresses'
    assert pluralize('Box') == 'Boxes'


def test_nested_type_name():
    assert nested_type_name('Post', 'address') == 'PostAddress'
    assert nested_type_name('PostAddress', 'geo_point') == 'PostAddressGeoPoint'
