from unittest.case import TestCase

from mlprocess.util.strings import fold_strings, format_parameters, parse_parameters


class FoldStringsTest(TestCase):
    def test_fold(self):
        self.assertEqual(fold_strings([]), '')
        self.assertEqual(fold_strings(['task']), 'task')
        self.assertEqual(fold_strings(['task#a', 'task#c', 'task#b'], split='#'), 'task#[a, b, c]')
        self.assertEqual(fold_strings(['a', 'b']), 'a, b')


class ParametersTest(TestCase):
    def test_parse(self):
        self.assertEqual(parse_parameters('c=1 kernel=rbf'), {'c': '1', 'kernel': 'rbf'})
        self.assertEqual(parse_parameters('verbose'), {'verbose': ''})
        self.assertEqual(parse_parameters('name="two words"'), {'name': 'two words'})
        self.assertEqual(parse_parameters(None), {})


    def test_format(self):
        params = {'c': '1', 'verbose': '', 'name': 'two words'}
        self.assertEqual(parse_parameters(format_parameters(params)), params)
