""" Defaults and option parsing shared by every temit component. The broker
    location and exchange name can be set from the environment, so that a
    deployment can point every service at a different broker without code
    changes; explicit arguments to :class:`temit.Client` always win.
"""

import datetime
import os
import re


url = os.environ.get('TEMIT_URL', 'amqp://localhost')
exchange = os.environ.get('TEMIT_EXCHANGE', 'temit')

pool_maximum = 10
pool_minimum = 1
prefetch = 48
timeout = '30s'
workers = 8

# Delay bucket queues outlive their TTL by this many milliseconds, so that the
# broker has time to dead-letter everything inside before the queue expires.

bucket_grace = 60000

priorities = range(1, 11)


_second = 1000
_minute = _second * 60
_hour = _minute * 60
_day = _hour * 24
_week = _day * 7
_year = _day * 365.25

_units = {
    'ms': 1, 'msec': 1, 'msecs': 1, 'millisecond': 1, 'milliseconds': 1,
    's': _second, 'sec': _second, 'secs': _second,
    'second': _second, 'seconds': _second,
    'm': _minute, 'min': _minute, 'mins': _minute,
    'minute': _minute, 'minutes': _minute,
    'h': _hour, 'hr': _hour, 'hrs': _hour, 'hour': _hour, 'hours': _hour,
    'd': _day, 'day': _day, 'days': _day,
    'w': _week, 'week': _week, 'weeks': _week,
    'y': _year, 'yr': _year, 'yrs': _year, 'year': _year, 'years': _year,
}

_duration = re.compile(r'^(-?(?:\d+)?\.?\d+) *([a-z]+)?$', re.IGNORECASE)


def milliseconds(value):
    """ Interpret *value* as a duration and return it as an integer number
        of milliseconds. Numbers are taken to be milliseconds already; a
        :class:`datetime.timedelta` is converted; strings follow the
        conventions of the JavaScript ``ms`` package, such as ``'50ms'``,
        ``'30 seconds'`` or ``'2min'``, with a bare number again meaning
        milliseconds.
    """

    if isinstance(value, bool):
        raise ValueError('not a duration: %r' % (value,))

    if isinstance(value, datetime.timedelta):
        return int(round(value.total_seconds() * 1000))

    if isinstance(value, (int, float)):
        return int(round(value))

    if not isinstance(value, str):
        raise ValueError('not a duration: %r' % (value,))

    match = _duration.match(value.strip())
    if match is None:
        raise ValueError('not a duration: %r' % (value,))

    number, unit = match.groups()

    if unit is None:
        multiplier = 1
    else:
        try:
            multiplier = _units[unit.lower()]
        except KeyError:
            raise ValueError('unknown duration unit in %r' % (value,))

    return int(round(float(number) * multiplier))



def priority(value):
    """ Validate a message priority. None passes through untouched, anything
        else must be an integer from 1 to 10 inclusive.
    """

    if value is None:
        return None

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError('priority must be an integer from 1 to 10, not %r' % (value,))

    if value not in priorities:
        raise ValueError('priority must be an integer from 1 to 10, not %r' % (value,))

    return value


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
