#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
argparse command tree generated from the typed azdeploy API
"""

import argparse
import inspect
import json
import logging
import traceback
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

import jmespath
from docstring_parser import parse as parse_docstring
from pydantic import BaseModel, ValidationError

LOGGER = logging.getLogger("azdeploy.cli")

JMES_HELP = (
    "JMESPath query string. See http://jmespath.org/ "
    "for more information and examples."
)

# loggers raised to DEBUG at -vv, in addition to the API logger
SDK_LOGGERS = ["azure.identity", "msal"]


def _bound_args(func: Callable, args: argparse.Namespace) -> Dict[str, Any]:
    spec = inspect.getfullargspec(func)
    result = {}
    for arg in spec.args[1:] + spec.kwonlyargs:
        if hasattr(args, arg):
            result[arg] = getattr(args, arg)
    return result


def call_setup(api: Any, args: argparse.Namespace) -> None:
    setup = getattr(api, "__setup__", None)
    if setup is None:
        return
    setup(**_bound_args(setup, args))


def call_func(func: Callable, args: argparse.Namespace) -> Any:
    return func(**_bound_args(func, args))


def arg_bool(arg: str) -> bool:
    acceptable = ["true", "false"]
    if arg not in acceptable:
        raise argparse.ArgumentTypeError(
            "invalid value: %s, must be %s" % (repr(arg), " or ".join(acceptable))
        )
    return arg == "true"


def is_a(annotation: Any, origin: Any, count: Optional[int] = None) -> bool:
    actual = getattr(annotation, "__origin__", None)
    if isinstance(origin, tuple):
        matched = actual in origin
    else:
        matched = actual == origin
    return matched and (count is None or len(annotation.__args__) == count)


def get_arg(annotation: Any, index: Optional[int] = None) -> Union[Any, List[Any]]:
    if index is None:
        return annotation.__args__
    return annotation.__args__[index]


def is_optional(annotation: Any) -> bool:
    return is_a(annotation, Union, count=2) and (
        get_arg(annotation, 1) == type(None)  # noqa: E721
    )


def add_base(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose", action="count", help="increase output verbosity", default=0
    )
    parser.add_argument(
        "--format", choices=["json", "raw"], default="json", help="output format"
    )
    parser.add_argument("--query", help=JMES_HELP)


def enum_help(entry: Type[Enum]) -> str:
    return "accepted %s: %s" % (entry.__name__, ", ".join([x.name for x in entry]))


def model_parser(model: Type[BaseModel]) -> Callable[[str], BaseModel]:
    def parse_model(data: str) -> BaseModel:
        if data.startswith("@"):
            try:
                with open(data[1:], "r") as handle:
                    data = handle.read()
            except FileNotFoundError:
                raise argparse.ArgumentTypeError("not a file: %s" % data[1:])

        try:
            return model.parse_raw(data)
        except ValidationError as err:
            raise argparse.ArgumentTypeError("parsing error\n" + str(err))

    parse_model.__name__ = model.__name__
    return parse_model


class Builder:
    def __init__(self, api_types: List[Any]):
        self.type_parsers: Dict[Any, Dict[str, Any]] = {
            str: {"type": str},
            int: {"type": int},
        }
        self.api_types = tuple(api_types)
        self.top_level = argparse.ArgumentParser(add_help=False)
        add_base(self.top_level)

        self.main_parser = argparse.ArgumentParser(prog="azdeploy")
        add_base(self.main_parser)

    def add_version(self, version: str) -> None:
        self.main_parser.add_argument(
            "--version",
            action="version",
            version="%(prog)s {version}".format(version=version),
        )

    def parse_api(self, api: Any) -> None:
        setup = getattr(api, "__setup__", None)
        if setup:
            self.parse_function(setup, self.main_parser)
        self.parse_nested_instances(self.main_parser, api)

    def get_help(self, obj: Any) -> str:
        return (parse_docstring(obj.__doc__).short_description or "").strip()

    def parse_function(self, func: Callable, parser: argparse.ArgumentParser) -> None:
        sig = inspect.signature(func)

        arg_docs = {}
        for opt in parse_docstring(func.__doc__).params:
            if opt.description:
                arg_docs[opt.arg_name] = opt.description

        for arg in sig.parameters:
            if arg == "self":
                continue
            args, kwargs = self.parse_param(
                arg, sig.parameters[arg], help_doc=arg_docs.get(arg)
            )
            parser.add_argument(*args, **kwargs)

    def parse_param(
        self, name: str, param: inspect.Parameter, help_doc: Optional[str] = None
    ) -> Tuple[List[str], Dict[str, Any]]:
        default = param.default
        kwargs = self.parse_annotation(name, param.annotation, default, help_doc)
        if not (
            isinstance(default, bool) or default in [None, inspect.Parameter.empty]
        ):
            if "help" in kwargs:
                kwargs["help"] += " (default: %(default)s)"
            else:
                kwargs["help"] = "(default: %(default)s)"
            kwargs["default"] = default

        optional = default is not inspect.Parameter.empty
        if kwargs.pop("optional", False):
            optional = True

        return (["--" + name if optional else name], kwargs)

    def parse_annotation_class(
        self, annotation: Any, default: Any
    ) -> Optional[Dict[str, Any]]:
        if issubclass(annotation, Enum):
            return {
                "type": annotation,
                "help": enum_help(annotation),
                "metavar": annotation.__name__,
            }

        if issubclass(annotation, bool):
            if default is False:
                return {
                    "action": "store_true",
                    "optional": True,
                    "help": "(Default: False.  Sets value to True)",
                }
            if default is True:
                return {
                    "action": "store_false",
                    "optional": True,
                    "help": "(Default: True.  Sets value to False)",
                }
            if default is None:
                return {
                    "type": arg_bool,
                    "optional": True,
                    "help": "Provide 'true' to set to true and 'false' to set to false",
                }
            raise Exception("Argument parsing error: %s" % repr(default))

        if issubclass(annotation, BaseModel):
            return {
                "metavar": annotation.__name__,
                "help": "JSON for %s.  use @file to read from a file"
                % annotation.__name__,
                "type": model_parser(annotation),
            }

        return None

    def parse_annotation(
        self,
        name: str,
        annotation: Any,
        default: Any,
        help_doc: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Parse a single type annotation into keyword arguments for
        argparse.add_argument
        """

        result: Dict[str, Any] = {}
        if help_doc:
            result["help"] = help_doc

        if annotation in self.type_parsers:
            result.update(self.type_parsers[annotation].copy())
            return result

        if is_optional(annotation):
            result.update(self.parse_annotation(name, get_arg(annotation, 0), default))
            result["optional"] = True
            return result

        if is_a(annotation, (list, List), count=1):
            result.update(self.parse_annotation(name, get_arg(annotation, 0), default))
            result["nargs"] = "*"
            return result

        if inspect.isclass(annotation):
            class_result = self.parse_annotation_class(annotation, default)
            if class_result is not None:
                result.update(class_result)
                if help_doc and result["help"] != help_doc:
                    result["help"] = "%s %s" % (help_doc, result["help"])
                return result

        raise Exception("unsupported annotation: %s - %s" % (name, annotation))

    def get_children(
        self, inst: Any, is_callable: bool = False, is_typed: bool = False
    ) -> List[Tuple[str, Any]]:
        entries = []
        for name in dir(inst):
            if name.startswith("_"):
                continue

            func = getattr(inst, name)
            if is_callable and not callable(func):
                continue
            if is_typed and not isinstance(func, self.api_types):
                continue

            entries.append((name, func))
        return entries

    def parse_instance(self, inst: Any, subparser: Any) -> None:
        """Expose every non-private method of an instance as a command"""
        for (name, func) in self.get_children(inst, is_callable=True):
            sub = subparser.add_parser(name, help=self.get_help(func))
            add_base(sub)
            self.parse_function(func, sub)
            sub.set_defaults(func=func)

    def parse_nested_instances(
        self, main_parser: argparse.ArgumentParser, inst: Any, level: int = 0
    ) -> None:
        subparser = main_parser.add_subparsers(
            title="subcommands", dest="level_%d" % level
        )

        for (name, endpoint) in self.get_children(inst, is_typed=True):
            parser = subparser.add_parser(
                name, help=self.get_help(endpoint), parents=[self.top_level]
            )
            method_subparser = parser.add_subparsers(
                title="subcommands", dest="level_%d" % (level + 1)
            )
            self.parse_instance(endpoint, method_subparser)

        self.parse_instance(inst, subparser)

    def parse_args(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        return self.main_parser.parse_args(argv)

    def print_nested_help(self, args: argparse.Namespace) -> None:
        level = 0
        parser = self.main_parser
        while parser._subparsers is not None and parser._subparsers._actions:
            choices = parser._subparsers._actions[-1].choices
            value = getattr(args, "level_%d" % level, None)
            if value is None or not isinstance(choices, dict):
                parser.print_help()
                return
            parser = choices[value]
            level += 1


def output(result: Any, output_format: str, expression: Optional[Any]) -> None:
    if isinstance(result, list) and result and isinstance(result[0], BaseModel):
        # cycling through json resolves all of the nested BaseModel objects
        result = [json.loads(x.json(exclude_none=True)) for x in result]
    if isinstance(result, BaseModel):
        result = json.loads(result.json(exclude_none=True))
    if expression is not None:
        result = expression.search(result)
    if result is not None:
        if output_format == "json":
            result = json.dumps(result, indent=4, sort_keys=True)
        print(result, flush=True)


def log_exception(args: argparse.Namespace, err: Exception) -> None:
    if args.verbose > 0:
        entry = traceback.format_exc()
        for x in entry.split("\n"):
            LOGGER.error("traceback: %s", x)
    LOGGER.error("command failed: %s", " ".join([str(x) for x in err.args]))


def set_log_level(api_logger: logging.Logger, verbose: int) -> None:
    if verbose <= 1:
        logging.basicConfig(level=logging.WARNING)
        api_logger.setLevel(logging.INFO if verbose == 0 else logging.DEBUG)
    elif verbose == 2:
        logging.basicConfig(level=logging.INFO)
        api_logger.setLevel(logging.DEBUG)
        for name in SDK_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.DEBUG)
        api_logger.setLevel(logging.DEBUG)


def execute_api(
    api: Any, api_types: List[Any], version: str, argv: Optional[List[str]] = None
) -> int:
    builder = Builder(api_types)
    builder.add_version(version)
    builder.parse_api(api)
    args = builder.parse_args(argv)

    set_log_level(api.logger, args.verbose)

    if not hasattr(args, "func"):
        LOGGER.error("no command specified")
        builder.print_nested_help(args)
        return 1

    if args.query:
        try:
            expression = jmespath.compile(args.query)
        except jmespath.exceptions.ParseError as err:
            LOGGER.error("unable to parse query: %s", err)
            return 1
    else:
        expression = None

    try:
        call_setup(api, args)
        result = call_func(args.func, args)
    except Exception as err:
        log_exception(args, err)
        return 1

    output(result, args.format, expression)
    return 0

