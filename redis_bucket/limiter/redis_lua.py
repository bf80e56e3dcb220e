"""Redis Lua script for leaky bucket admission.

Redis runs a script atomically, so the read-decay-check-write sequence below
cannot interleave with another check on the same key from any instance.
Time comes from the Redis server so instances with skewed clocks agree.
"""

import hashlib

# KEYS[1]: bucket key
# ARGV[1]: cost, ARGV[2..]: flow_1, burst_1, ..., flow_n, burst_n
# Returns {allowed (0|1), free or denied accumulator (string), tier index}
LEAKY_BUCKET_SCRIPT = """
redis.replicate_commands()

local key, cost = KEYS[1], tonumber(ARGV[1])
local tiers = (#ARGV - 1) / 2

local raw = redis.call('time')
local now = tonumber(raw[1]) + tonumber(raw[2]) / 1e6
local okay, time, deny, prev = pcall(cmsgpack.unpack, redis.pcall('get', key))

-- Records that fail to decode or were written for other tiers start fresh
local fresh = not okay or type(time) ~= 'number' or type(deny) ~= 'number'
    or type(prev) ~= 'table' or #prev ~= tiers
if not fresh then
    for i = 1, tiers do
        if type(prev[i]) ~= 'number' or prev[i] < 0 then
            fresh = true
        end
    end
end
if fresh then
    time, deny, prev = now, 0, {}
    for i = 1, tiers do
        prev[i] = 0
    end
end

-- A server clock that went backwards must not add usage
local delta = math.max(0, now - time)

local next, expire, free, index = {}, 0, math.huge, 0

for i = 1, tiers do
    local flow, burst = tonumber(ARGV[2 * i]), tonumber(ARGV[2 * i + 1])

    prev[i] = math.max(0, prev[i] - (delta * flow))
    next[i] = prev[i] + cost

    -- Strict comparison keeps the slowest tier on ties
    if (burst - next[i]) < free then
        free, index = burst - next[i], i
    end

    expire = math.max(expire, math.ceil(math.max(burst, next[i]) / flow))
end

if free >= 0 then
    redis.call('setex', key, expire, cmsgpack.pack(now, 0, next))
    return { 1, tostring(free), index }
end

deny = deny + cost
redis.call('setex', key, expire, cmsgpack.pack(now, deny, prev))
return { 0, tostring(deny), index }
"""

LEAKY_BUCKET_SHA = hashlib.sha1(LEAKY_BUCKET_SCRIPT.encode("utf-8")).hexdigest()
