# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Intent parsing, query compilation and execution."""

from .compiler import QueryCompiler, parse_and_compile, validate_query
from .executor import execute_compiled
from .intent import IntentParser
