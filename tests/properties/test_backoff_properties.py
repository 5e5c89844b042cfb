# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Property tests for retry backoff policies."""

from hypothesis import given
from hypothesis import strategies as st

from bootstrap_manager.retry import ExponentialBackoffPolicy, LinearBackoffPolicy

base_delays = st.floats(min_value=0.0, max_value=60.0, allow_nan=False)
max_delays = st.floats(min_value=0.0, max_value=600.0, allow_nan=False)
attempts = st.integers(min_value=1, max_value=200)
jitters = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)


@given(base=base_delays, cap=max_delays, attempt=attempts, jitter=jitters)
def test_exponential_delay_is_bounded(base, cap, attempt, jitter):
    """Every delay lies within [0, max_delay], jitter included."""
    policy = ExponentialBackoffPolicy(base_delay=base, max_delay=cap, jitter_factor=jitter)
    assert 0.0 <= policy.next_delay(attempt) <= cap


@given(base=base_delays, cap=max_delays, attempt=attempts)
def test_exponential_delay_never_shrinks(base, cap, attempt):
    policy = ExponentialBackoffPolicy(base_delay=base, max_delay=cap)
    assert policy.next_delay(attempt) <= policy.next_delay(attempt + 1)


@given(base=base_delays, cap=max_delays, attempt=attempts)
def test_linear_delay_is_bounded_and_monotonic(base, cap, attempt):
    policy = LinearBackoffPolicy(base_delay=base, max_delay=cap)
    assert 0.0 <= policy.next_delay(attempt) <= cap
    assert policy.next_delay(attempt) <= policy.next_delay(attempt + 1)
