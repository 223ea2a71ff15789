# Bounded retries, for cloud calls that fail while IAM catches up.
#
# Copyright (C) 2025  The bsdimage Authors
#
# This program is free software; you can redistribute it and/or modify it
# under the terms of the GNU General Public License as published by the
# Free Software Foundation; either version 2 of the License, or (at your
# option) any later version.  See <https://www.gnu.org/licenses/gpl2.txt>.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of MERCHANTABILITY
# or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License
# for more details.

import time


class Policy:
    """Try up to ATTEMPTS times, sleeping DELAY*BACKOFF**n between tries"""

    def __init__(self, attempts=3, delay=5, backoff=1, sleep=time.sleep):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.delay = delay
        self.backoff = backoff
        self.sleep = sleep

    def __str__(self):
        return "%d attempts, %s second delay" % (self.attempts, self.delay)

    def delays(self):
        delay = self.delay
        for _ in range(self.attempts - 1):
            yield delay
            delay = delay * self.backoff

    def call(self, logger, what, function, *args, **kwargs):
        """Call FUNCTION until it returns something true

        Returns the first true result, or the last (false) result once
        the attempts are used up.  Exceptions are not caught.

        """
        delays = self.delays()
        attempt = 1
        while True:
            result = function(*args, **kwargs)
            if result:
                return result
            delay = next(delays, None)
            if delay is None:
                logger.warning("%s failed after %d attempts", what, attempt)
                return result
            logger.info("%s failed; retry %d/%d after %s seconds",
                        what, attempt, self.attempts, delay)
            self.sleep(delay)
            attempt += 1


# IAM bindings made straight after creating a service account can
# fail until the account propagates.
IAM = Policy(attempts=3, delay=5)
